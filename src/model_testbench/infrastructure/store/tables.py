"""
SQLAlchemy table definitions of the test store
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class ModelRow(Base):
    __tablename__ = "models"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), unique=True, nullable=False, index=True)
    provider = Column(String(50), nullable=False, default="")
    endpoint = Column(String(255), nullable=True)
    enabled = Column(Boolean, nullable=False, default=True)
    no_tools = Column(Boolean, nullable=False, default=False)
    max_context = Column(Integer, nullable=False, default=0)
    function_calling_score = Column(Integer, nullable=False, default=0)
    writer_score = Column(Float, nullable=False, default=0.0)
    test_duration_seconds = Column(Float, nullable=True)
    created_at = Column(DateTime, default=datetime.now, nullable=False)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)

    runs = relationship("TestRunRow", back_populates="model")


class AgentRow(Base):
    __tablename__ = "agents"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    role = Column(String(50), nullable=False, index=True)
    model_name = Column(String(255), nullable=False)
    instructions = Column(Text, nullable=False, default="")
    response_schema = Column(String(255), nullable=True)  # file under response_formats/
    active = Column(Boolean, nullable=False, default=True)


class TestDefinitionRow(Base):
    __tablename__ = "test_definitions"
    __test__ = False

    id = Column(Integer, primary_key=True, index=True)
    group_name = Column(String(100), nullable=False, index=True)
    library = Column(String(100), nullable=False, default="")
    function_name = Column(String(255), nullable=False, default="")
    prompt = Column(Text, nullable=False)
    test_type = Column(String(20), nullable=False, default="question")
    timeout_seconds = Column(Integer, nullable=False, default=0)
    priority = Column(Integer, nullable=False, default=1)
    expected_value = Column(Text, nullable=True)
    valid_range = Column(String(255), nullable=True)
    response_schema = Column(String(255), nullable=True)
    execution_plan = Column(String(255), nullable=True)
    allowed_capabilities = Column(Text, nullable=False, default="[]")  # JSON list
    files_to_stage = Column(Text, nullable=False, default="[]")  # JSON list
    description = Column(Text, nullable=False, default="")
    active = Column(Boolean, nullable=False, default=True)


class TestRunRow(Base):
    __tablename__ = "test_runs"
    __test__ = False

    id = Column(Integer, primary_key=True, index=True)
    model_id = Column(Integer, ForeignKey("models.id"), nullable=False, index=True)
    group_name = Column(String(100), nullable=False, index=True)
    working_folder = Column(Text, nullable=True)
    description = Column(Text, nullable=False, default="")
    notes = Column(Text, nullable=False, default="")
    passed = Column(Boolean, nullable=False, default=False)
    duration_ms = Column(Integer, nullable=True)
    started_at = Column(DateTime, default=datetime.now, nullable=False)
    completed_at = Column(DateTime, nullable=True)

    model = relationship("ModelRow", back_populates="runs")
    steps = relationship("TestStepRow", back_populates="run", order_by="TestStepRow.step_number")


class TestStepRow(Base):
    __tablename__ = "test_steps"
    __test__ = False

    id = Column(Integer, primary_key=True, index=True)
    run_id = Column(Integer, ForeignKey("test_runs.id"), nullable=False, index=True)
    step_number = Column(Integer, nullable=False)
    name = Column(String(255), nullable=False)
    input_json = Column(Text, nullable=True)
    output_json = Column(Text, nullable=True)
    passed = Column(Boolean, nullable=False, default=False)
    error = Column(Text, nullable=True)
    duration_ms = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.now, nullable=False)

    run = relationship("TestRunRow", back_populates="steps")
    assets = relationship("TestAssetRow", back_populates="step")


class TestAssetRow(Base):
    __tablename__ = "test_assets"
    __test__ = False

    id = Column(Integer, primary_key=True, index=True)
    step_id = Column(Integer, ForeignKey("test_steps.id"), nullable=False, index=True)
    asset_type = Column(String(50), nullable=False)
    path = Column(Text, nullable=False, default="")
    description = Column(Text, nullable=False, default="")
    duration_seconds = Column(Float, nullable=True)
    size_bytes = Column(Integer, nullable=True)
    story_id = Column(Integer, ForeignKey("stories.id"), nullable=True, index=True)

    step = relationship("TestStepRow", back_populates="assets")


class StoryRow(Base):
    __tablename__ = "stories"

    id = Column(Integer, primary_key=True, index=True)
    prompt = Column(Text, nullable=False, default="")
    text = Column(Text, nullable=False, default="")
    model_id = Column(Integer, ForeignKey("models.id"), nullable=True, index=True)
    status = Column(String(50), nullable=False, default="generated")
    created_at = Column(DateTime, default=datetime.now, nullable=False)

    model = relationship("ModelRow")
    evaluations = relationship("StoryEvaluationRow", back_populates="story")


class StoryEvaluationRow(Base):
    __tablename__ = "story_evaluations"

    id = Column(Integer, primary_key=True, index=True)
    story_id = Column(Integer, ForeignKey("stories.id"), nullable=False, index=True)
    agent_id = Column(Integer, ForeignKey("agents.id"), nullable=True)
    category_scores = Column(Text, nullable=False, default="{}")  # JSON {category: score}
    total_score = Column(Float, nullable=False, default=0.0)
    overall_evaluation = Column(Text, nullable=False, default="")
    raw_json = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, default=datetime.now, nullable=False)

    story = relationship("StoryRow", back_populates="evaluations")
