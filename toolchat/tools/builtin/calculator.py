"""Calculator tool — arithmetic on two floating point numbers."""
import logging
import math

from ..registry import ToolCallResult, ToolParam
from . import builtin_backend

logger = logging.getLogger(__name__)

OPERATIONS = {
    "add": lambda a, b: a + b,
    "subtract": lambda a, b: a - b,
    "multiply": lambda a, b: a * b,
    "divide": lambda a, b: a / b,
    "exponentiate": math.pow,
}


@builtin_backend.register_tool(
    "Calculator",
    description=(
        "Tool to perform arithmetic operation on two numbers.\n"
        "Valid operations are add, subtract, multiply, divide, and exponentiate.\n"
        "The input to this tool should be two floating point numbers"
    ),
    params=[
        ToolParam("operation", description="Operation to be performed on the two numbers"),
        ToolParam("a", type="number", description="First operand of the operation"),
        ToolParam("b", type="number", description="Second operand of the operation"),
    ],
)
async def calculator(operation: str, a, b, **kwargs) -> ToolCallResult:
    op = OPERATIONS.get(str(operation).strip().lower())
    if op is None:
        return ToolCallResult(
            text=f"Unsupported operation '{operation}'. Valid operations are: {', '.join(OPERATIONS)}",
            is_error=True,
        )

    try:
        x, y = float(a), float(b)
    except (TypeError, ValueError):
        return ToolCallResult(text=f"Operands must be numbers, got a={a!r}, b={b!r}", is_error=True)

    try:
        result = op(x, y)
    except ZeroDivisionError:
        return ToolCallResult(text="Division by zero", is_error=True)
    except (OverflowError, ValueError):
        return ToolCallResult(text=f"Result of {operation}({x}, {y}) is out of range", is_error=True)

    return ToolCallResult(text=f"{result:.4f}")
