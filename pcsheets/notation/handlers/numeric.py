"""
Arithmetic handlers: CALC, MAX, MIN, ROUNDUP and ROUNDDOWN.

All of them expand nested notations in their arguments first and then work
on the resulting numbers.
"""

import math

from pcsheets.notation.arithmetic import evaluate_arithmetic
from pcsheets.notation.handlers.base import NotationHandler
from pcsheets.notation.utils import MINUS_SIGN, parse_number, round_half_up, split_top_level_args


class CalcHandler(NotationHandler):
    """``{{CALC:{{VALUE:str}} * 2 + 1}}``"""
    name = "CALC"

    def process(self, content, context, processor):
        formula = processor.process(content, context).replace(MINUS_SIGN, "-")

        number = parse_number(formula)
        if number is None:
            number = evaluate_arithmetic(formula)
        if number is None or not math.isfinite(number):
            snippet = formula[:120]
            raise self.error(
                f"CALC expression evaluation failed: expression did not evaluate to a number. Context: {snippet}",
                context,
                f"CALC:{content}",
            )
        return round_half_up(number)


class _ReducingHandler(NotationHandler):
    reducer = None

    def process(self, content, context, processor):
        segments = split_top_level_args(content)
        if len(segments) < 2:
            raise self.error(f"{self.name} requires at least two values to compare.", context, f"{self.name}:{content}")

        numbers = []
        for segment in segments:
            evaluated = processor.process(segment, context)
            number = parse_number(evaluated)
            if number is None:
                raise self.error(
                    f"{self.name} argument '{segment}' did not resolve to a finite number.",
                    context,
                    f"{self.name}:{segment}",
                )
            numbers.append(number)
        return self.reducer(numbers)


class MaxHandler(_ReducingHandler):
    name = "MAX"
    reducer = max


class MinHandler(_ReducingHandler):
    name = "MIN"
    reducer = min


class _RoundingHandler(NotationHandler):
    rounder = None

    def process(self, content, context, processor):
        processed = processor.process(content, context)
        number = parse_number(processed)
        if number is None:
            raise self.error(
                f"{self.name} requires a numeric value; received '{processed}'.",
                context,
                f"{self.name}:{content}",
            )
        return self.rounder(number)


class RoundupHandler(_RoundingHandler):
    name = "ROUNDUP"
    rounder = math.ceil


class RounddownHandler(_RoundingHandler):
    name = "ROUNDDOWN"
    rounder = math.floor
