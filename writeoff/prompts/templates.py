"""Prompt templates for writers, judges, refinement and judgment repair.

Judge instructions are built from the rubric in use, so the criterion
list and weights shown to the judge always match what is validated.
"""

from writeoff.schemas.rubric import Criterion, Rubric

# ---------------------------------------------------------------------------
# Writer
# ---------------------------------------------------------------------------

WRITER_SYSTEM = """\
You are a skilled blog writer. Write an engaging, narrative-driven blog post.

Guidelines:
- Keep it under 8 minutes to read
- Write in a conversational, storytelling style
- Make it entertaining AND educational - the reader should learn something
- Flow naturally through ideas; avoid choppy transitions
- Avoid bullet points unless absolutely necessary
- NO em-dashes - use commas, semicolons, or restructure sentences
- NO emojis
- NO cliches like "dive into", "unleash", "game-changer", "in today's fast-paced world"
- Vary sentence length and structure
- Output in clean Markdown format
"""

WRITER_TASK = """\
Write a blog post about: {topic}
"""

WRITER_EXPAND_TASK = """\
Here is an existing blog post draft:

---
{existing_content}
---

Please expand and improve this post about "{topic}". Maintain the original \
voice and direction while enhancing the narrative, adding depth, and ensuring \
it meets all the guidelines.
"""


# ---------------------------------------------------------------------------
# Refinement (flywheel)
# ---------------------------------------------------------------------------

REFINEMENT_SYSTEM = WRITER_SYSTEM + """
You are refining an existing blog post based on judge feedback. Your task is to:
1. Carefully read the original post and the feedback provided
2. Address the specific issues raised by the judges
3. Improve areas with lower scores while preserving strengths
4. Maintain the original voice, topic, and core message
5. Output the complete improved post, not just the changes
"""

REFINEMENT_TASK = """\
Here is the current blog post:

---
{post}
---

{feedback}

Please provide the improved version of the entire post:"""

FEEDBACK_CLOSING = (
    "Please improve the post based on the feedback above. "
    "Focus especially on criteria with lower scores. "
    "Maintain what is working well while addressing the specific issues raised."
)


# ---------------------------------------------------------------------------
# Judge
# ---------------------------------------------------------------------------

JUDGE_SYSTEM = """\
You are an expert blog post evaluator. Your job is to critically assess blog \
posts against specific quality criteria.

Be rigorous and honest in your evaluation. A score of 70+ indicates good \
quality, 80+ is excellent, and 90+ is exceptional. Most posts should score \
between 60-80.

Evaluate each criterion independently and provide specific, actionable feedback.
"""

CRITERION_GUIDANCE: dict[str, str] = {
    Criterion.NARRATIVE: (
        "Does the post tell a compelling story? Are transitions smooth? "
        "Does it maintain reader interest throughout?"
    ),
    Criterion.STRUCTURE: (
        "Is the post well-organized? Does it have a clear introduction, body, "
        "and conclusion? Is the length appropriate?"
    ),
    Criterion.AUDIENCE_FIT: (
        "Is the content appropriate for the target audience? Is the tone "
        "consistent? Is it both entertaining and educational?"
    ),
    Criterion.ACCURACY: (
        "Are claims grounded and non-misleading? Penalize exaggeration and "
        "invented specifics presented as fact. An invented or exaggerated "
        "example must be clearly labeled as hypothetical and kept realistic."
    ),
    Criterion.AI_DETECTION: (
        "Does the writing feel natural and human? Score LOWER for common AI "
        "writing patterns: excessive em dashes, sweeping generalizations that "
        'claim universal experience ("We\'ve all been there"), clever reversals '
        "(\"It's not X, it's Y\"), throat-clearing section openers (\"Here's the "
        'thing"), perfectly symmetrical structure, checklist-like terseness '
        "without transitions, and generic motivational closings. Score HIGHER "
        "for admitted mistakes with real specifics, numbers with measurement "
        "context, idiosyncratic opinions, concrete personal anecdotes and "
        "organic transitions."
    ),
}

JUDGE_TASK = """\
Evaluate the following blog post against these criteria:

{criteria}

---

POST TO EVALUATE:

{post}

---

Provide your evaluation as a JSON object with:
- "scores": an array of {count} objects, each with "criterion" (one of: \
{criterion_names}), "score" (1-100), and "feedback" (specific, actionable feedback)
- "overallScore": the weighted average based on the weights above

Return JSON only:
- No code fences
- No Markdown
- No additional commentary outside the JSON object

Be specific in your feedback. Point to exact passages when possible.
"""


def format_criteria(rubric: Rubric) -> str:
    """Numbered criterion list with each weight as a share of the total."""
    total = sum(rubric.weights.values())
    lines = []
    for number, key in enumerate(rubric.keys, start=1):
        share = rubric.weight(key) / total * 100
        guidance = CRITERION_GUIDANCE.get(key, "")
        line = f"{number}. **{rubric.label(key)} (weight: {share:.0f}%)**"
        if guidance:
            line += f": {guidance}"
        lines.append(line)
    return "\n\n".join(lines)


def build_judge_prompt(post: str, rubric: Rubric) -> str:
    return JUDGE_TASK.format(
        criteria=format_criteria(rubric),
        post=post,
        count=len(rubric.keys),
        criterion_names=", ".join(f'"{key}"' for key in rubric.keys),
    )


# ---------------------------------------------------------------------------
# Judgment repair
# ---------------------------------------------------------------------------

REPAIR_SYSTEM = """\
You are a JSON fixer. Return ONLY a JSON object that matches the requested \
schema. Do not include markdown, code fences, explanations, or extra keys.
"""

REPAIR_TASK = """\
Your previous evaluation could not be accepted.

Original instructions:
{instruction}

Your previous response:
{invalid_response}

Validation error:
{error}

Reply again with {schema_hint}. No prose before or after the JSON."""


def judge_schema_hint(rubric: Rubric) -> str:
    names = ", ".join(f'"{key}"' for key in rubric.keys)
    return (
        'a single JSON object of the form {"scores": [{"criterion": ..., "score": ..., '
        '"feedback": ...}, ...], "overallScore": ...} with exactly one entry for each '
        f"criterion: {names}"
    )
