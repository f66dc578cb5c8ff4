"""Deep research scaffold tool.

Breaks a query into a fixed sequence of reasoning stages the model can use
to structure a longer investigation. Offered only when a request opts in.
"""

from typing import Any

from chatgate.tools.registry import DEEP_RESEARCH_TOOL, tool

_STAGES = [
    ("analysis", "Breaking down the main question into components"),
    ("decomposition", "Extracting important terms and concepts"),
    ("perspective", "Exploring different viewpoints on the topic"),
    ("synthesis", "Integrating various aspects into a coherent understanding"),
    ("conclusion", "Summarizing the multi-step analysis"),
]


@tool(
    description=(
        "Perform deep research analysis by breaking down complex queries "
        "into multiple reasoning steps"
    ),
    name=DEEP_RESEARCH_TOOL,
)
async def deepresearch(query: str, max_steps: int = 5) -> dict[str, Any]:
    """Plan a multi-step analysis of a query.

    Args:
        query: The research query to analyze in multiple steps
        max_steps: Maximum number of reasoning steps
    """
    key_elements = [word for word in query.split() if len(word) > 3]
    contents = {
        "analysis": f'Analyzing query: "{query}"',
        "decomposition": f"Key elements identified: {', '.join(key_elements)}",
        "perspective": "Considering multiple angles and implications",
        "synthesis": "Combining insights from different perspectives",
        "conclusion": "Formulating final insights and recommendations",
    }

    steps = [
        {"step": i, "type": stage, "content": contents[stage], "reasoning": reasoning}
        for i, (stage, reasoning) in enumerate(_STAGES, 1)
    ]

    return {
        "query": query,
        "steps": steps[: max(1, max_steps)],
        "totalSteps": len(steps),
        "analysis": "Deep research completed through systematic multi-step reasoning",
    }
