"""
Built-in capability families: text, math, time
"""

from __future__ import annotations

from datetime import datetime, timedelta

from model_testbench.capabilities.base import Capability, capability_function, register_capability

_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"
_DATE_FORMAT = "%Y-%m-%d"


@register_capability
class TextCapability(Capability):
    name = "text"
    description = "Provides various text manipulation functions."

    @capability_function("Converts a string to uppercase.", text=("string", "The string to convert to uppercase."))
    def to_upper(self, text: str) -> str:
        return text.upper()

    @capability_function("Converts a string to lowercase.", text=("string", "The string to convert to lowercase."))
    def to_lower(self, text: str) -> str:
        return text.lower()

    @capability_function("Trims whitespace from the start and end of a string.", text=("string", "The string to trim."))
    def trim(self, text: str) -> str:
        return text.strip()

    @capability_function("Gets the length of a string.", text=("string", "The string to measure."))
    def length(self, text: str) -> int:
        return len(text)

    @capability_function(
        "Extracts a substring from a string.",
        text=("string", "The string to extract the substring from."),
        start_index=("integer", "The zero-based starting index of the substring."),
        length=("integer", "The length of the substring."),
    )
    def substring(self, text: str, start_index: int, length: int) -> str:
        if start_index < 0 or length < 0 or start_index + length > len(text):
            raise ValueError("Substring range is outside the string")
        return text[start_index:start_index + length]

    @capability_function(
        "Joins an array of strings into a single string with a separator.",
        text=("array", "The array of strings to join."),
        separator=("string", "The separator to use."),
    )
    def join(self, text: list[str], separator: str) -> str:
        return separator.join(str(item) for item in text)

    @capability_function(
        "Splits a string into an array of strings using a separator.",
        text=("string", "The string to split."),
        separator=("string", "The separator to use."),
    )
    def split(self, text: str, separator: str) -> list[str]:
        return text.split(separator) if separator else text.split()


@register_capability
class MathCapability(Capability):
    name = "math"
    description = "Provides math functions such as add, subtract, multiply, and divide."

    @capability_function("Adds two numbers.", a=("number", "The first number."), b=("number", "The second number."))
    def add(self, a: float, b: float) -> float:
        return a + b

    @capability_function("Subtracts two numbers.", a=("number", "The first number."), b=("number", "The second number."))
    def subtract(self, a: float, b: float) -> float:
        return a - b

    @capability_function("Multiplies two numbers.", a=("number", "The first number."), b=("number", "The second number."))
    def multiply(self, a: float, b: float) -> float:
        return a * b

    @capability_function("Divides two numbers.", a=("number", "The dividend."), b=("number", "The divisor."))
    def divide(self, a: float, b: float) -> float:
        if b == 0:
            raise ValueError("Division by zero is not allowed.")
        return a / b


@register_capability
class TimeCapability(Capability):
    name = "time"
    description = "Provides time-related functions such as getting the current date and time, and date arithmetic."

    @capability_function("Gets the current date and time.")
    def now(self) -> str:
        return datetime.now().strftime(_DATETIME_FORMAT)

    @capability_function("Gets today's date.")
    def today(self) -> str:
        return datetime.now().strftime(_DATE_FORMAT)

    @capability_function("Adds days to the current date.", days=("integer", "The number of days to add."))
    def add_days(self, days: int) -> str:
        return (datetime.now() + timedelta(days=days)).strftime(_DATE_FORMAT)

    @capability_function("Adds hours to the current time.", hours=("integer", "The number of hours to add."))
    def add_hours(self, hours: int) -> str:
        return (datetime.now() + timedelta(hours=hours)).strftime(_DATETIME_FORMAT)
