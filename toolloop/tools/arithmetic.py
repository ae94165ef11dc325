"""Arithmetic capabilities."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel

from toolloop.tools.base import Datatype, ParameterSpec
from toolloop.tools.categories import Category
from toolloop.tools.specs import CapabilitySpec


class NoNumbersError(ValueError):
    pass


class SumArgs(BaseModel):
    a: float
    b: Optional[float] = None
    c: Optional[float] = None
    d: Optional[float] = None
    e: Optional[float] = None


class AverageArgs(BaseModel):
    numbers: List[float]


class MultiplyArgs(BaseModel):
    a: float
    b: float


class SumRangeArgs(BaseModel):
    a: int
    b: int


def _sum(args: SumArgs) -> float:
    return sum(v for v in (args.a, args.b, args.c, args.d, args.e) if v is not None)


def _average(args: AverageArgs) -> float:
    if not args.numbers:
        raise NoNumbersError("No numbers were provided from which to calculate an average.")
    return sum(args.numbers) / len(args.numbers)


def _multiply(args: MultiplyArgs) -> float:
    return args.a * args.b


def _sum_range(args: SumRangeArgs) -> int:
    low, high = min(args.a, args.b), max(args.a, args.b)
    return (low + high) * (high - low + 1) // 2


SUM = CapabilitySpec(
    name="sum",
    description="Adds a maximum of 5 numbers together. All but the first number is optional.",
    params=(
        ParameterSpec("a", "The first number", Datatype.FLOAT),
        ParameterSpec("b", "The second number", Datatype.FLOAT, required=False),
        ParameterSpec("c", "The third number", Datatype.FLOAT, required=False),
        ParameterSpec("d", "The fourth number", Datatype.FLOAT, required=False),
        ParameterSpec("e", "The fifth number", Datatype.FLOAT, required=False),
    ),
    args_model=SumArgs,
    func=_sum,
    category=Category.ARITHMETIC,
)

AVERAGE = CapabilitySpec(
    name="average",
    description="Calculates the average of a list of numbers.",
    params=(ParameterSpec("numbers", "The numbers to average", Datatype.FLOAT_ARRAY),),
    args_model=AverageArgs,
    func=_average,
    category=Category.ARITHMETIC,
)

MULTIPLY = CapabilitySpec(
    name="multiply",
    description="Multiplies two numbers together.",
    params=(
        ParameterSpec("a", "The first number", Datatype.FLOAT),
        ParameterSpec("b", "The second number", Datatype.FLOAT),
    ),
    args_model=MultiplyArgs,
    func=_multiply,
    category=Category.ARITHMETIC,
)

SUM_RANGE = CapabilitySpec(
    name="sum_range",
    description="Adds all whole numbers between a and b, inclusive.",
    params=(
        ParameterSpec("a", "The start of the range", Datatype.INTEGER),
        ParameterSpec("b", "The end of the range", Datatype.INTEGER),
    ),
    args_model=SumRangeArgs,
    func=_sum_range,
    category=Category.ARITHMETIC,
)

ARITHMETIC_CAPABILITIES = (SUM, AVERAGE, MULTIPLY, SUM_RANGE)
