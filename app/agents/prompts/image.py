STYLE_PROMPTS: dict[str, str] = {
    "cinematic": (
        "Photorealistic, cinematic lighting, 8k, highly detailed, realistic skin textures, film grain."
    ),
    "webtoon_action": (
        "Modern manhwa style, sharp lines, vibrant colors, dynamic shading, aesthetic, high contrast."
    ),
    "webtoon_romance": (
        "Soft manhwa style, pastel colors, sparkly eyes, emotional atmosphere, graceful character designs, "
        "beautiful background wash."
    ),
    "webtoon_thriller": (
        "Dark manhwa style, gritty textures, heavy shadows, suspenseful atmosphere, sharp angles, "
        "muted color palette with high contrast."
    ),
    "webtoon_yadam": (
        "Traditional Korean ink wash painting aesthetic combined with clean manhwa lines, elegant, "
        "subtle traditional textures."
    ),
}

ERA_CONTEXT: dict[str, str] = {
    "modern": "Set in modern day South Korea, wearing modern trendy fashion, modern city background",
    "joseon": "Set in Joseon Dynasty, wearing traditional Korean Hanbok, traditional Korean architecture",
}

# 角色立绘必须是单人
PORTRAIT_HINT = (
    "A solo portrait of ONE SINGLE PERSON. ONLY ONE individual in the frame. "
    "No groups, no crowds, no second person. Single subject only. Centered portrait, looking at camera."
)

QUALITY_SUFFIX = "South Korean character. High quality."


def build_image_prompt(
    prompt: str,
    *,
    style: str,
    style_guide: str,
    era: str,
    is_portrait: bool,
) -> str:
    """拼接最终图像 prompt：主体 + 单人约束 + 画风 + 风格指南 + 时代背景"""
    parts = [prompt.strip().rstrip(".")]
    if is_portrait:
        parts.append(PORTRAIT_HINT.rstrip("."))
    parts.append(STYLE_PROMPTS.get(style, STYLE_PROMPTS["cinematic"]).rstrip("."))
    if style_guide.strip():
        parts.append(style_guide.strip().rstrip("."))
    parts.append(ERA_CONTEXT.get(era, ERA_CONTEXT["modern"]))
    return ". ".join(p for p in parts if p) + ". " + QUALITY_SUFFIX
