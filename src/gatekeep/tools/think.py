"""The ``think`` tool: a scratchpad that nudges the model to stay brief."""

from pydantic import BaseModel, Field

from gatekeep.agent.tools import FunctionTool

MAX_REASONING_LINES = 10
MAX_REASONING_CHARS = 1500


class ThinkArgs(BaseModel):
    reasoning: str = Field(
        description=(
            "Brief reasoning (2-4 sentences) about whether the code violates the rule, "
            "considering exceptions and context"
        )
    )


async def think(args: ThinkArgs) -> str:
    lines = len(args.reasoning.splitlines())
    chars = len(args.reasoning)
    if lines > MAX_REASONING_LINES or chars > MAX_REASONING_CHARS:
        return (
            f"OK. Note: Overthinking detected ({lines} lines, {chars} chars). "
            "Keep reasoning concise and focused."
        )
    return "OK"


def think_tool() -> FunctionTool[ThinkArgs]:
    return FunctionTool(
        name="think",
        description=(
            "Think through whether something is a violation (keep reasoning brief and focused). "
            "MUST be called before reporting any violations."
        ),
        args_model=ThinkArgs,
        fn=think,
    )
