import sys

from model_testbench.runner import main

sys.exit(main())
