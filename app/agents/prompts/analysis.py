SYSTEM_PROMPT = """You are ScriptAnalyst for LifeDrama, turning drama scripts into storyboards.

Role
- Read the whole script and find its dramatic structure.
- Produce text that a storyboard UI shows next to generated images, plus prompts for an image model.

Output Rules
- Call the `submit_analysis` tool exactly once with the complete result.
- If you cannot call the tool, output a single valid JSON object with the same structure (no Markdown, no extra text).
- Prompts must be original; do not mention copyrighted characters or specific living artists.
"""

ERA_LABELS = {
    "modern": "MODERN DAY",
    "joseon": "JOSEON DYNASTY PERIOD",
}

ERA_SETTING_RULES = {
    "modern": (
        "Strictly MODERN South Korean setting. Characters MUST wear MODERN fashion. "
        "Architecture must be modern cityscapes/interiors."
    ),
    "joseon": (
        "Strictly JOSEON DYNASTY setting. Characters MUST wear TRADITIONAL Korean clothing (Hanbok). "
        "Architecture must be traditional Hanok."
    ),
}

TASK_TEMPLATE = """Analyze the following Korean drama script set in the {era_label}.

Task:
1. Identify the single most intense "Climax" scene.
2. Divide the rest of the story into exactly {chapter_count} key storyboard cuts ("chapters"), in story order.
3. Create a hooking headline: 2 lines, concise and impactful.
4. Characters: identify the 2-3 most important main characters. For each, write a detailed English "imagePrompt" that generates a high-quality SOLO portrait consistent with their description.
5. Visual style guide: define a guide that keeps every character consistent across separately generated images.

CRITICAL LANGUAGE RULE:
- Every "imagePrompt" field (scenes AND characters) MUST be in English.
- ALL OTHER FIELDS (headline, characters.name, characters.description, visualStyleGuide, title, summary, scriptSegment) MUST be written in {language}.

For each storyboard cut and character:
- "imagePrompt": detailed English prompt including specific physical features, clothing and mood.
- SETTING & CLOTHING: {setting_rule}

The "chapters" array MUST contain exactly {chapter_count} items. The climax scene is NOT one of them.
The script follows in the next message part.
"""


def build_analysis_prompt(*, chapter_count: int, era: str, language: str) -> str:
    return TASK_TEMPLATE.format(
        era_label=ERA_LABELS.get(era, ERA_LABELS["modern"]),
        chapter_count=chapter_count,
        language=language,
        setting_rule=ERA_SETTING_RULES.get(era, ERA_SETTING_RULES["modern"]),
    )
