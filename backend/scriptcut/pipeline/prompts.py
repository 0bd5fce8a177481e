"""Prompt text for every oracle call made by the pipeline."""

SCORE_ONLY_SYSTEM = (
    "You are a scoring assistant. You MUST respond with ONLY a number between 0 and 100. "
    "No other text, no explanations, just the number."
)

QUALITY_VECTOR_SYSTEM = """You are an expert at analyzing video transcript segments across multiple dimensions.
For each segment, analyze and return 4 scores with these specific ranges:
1. Relevance: 0-100 (0=irrelevant, 100=highly relevant)
2. Sentiment: -100 to +100 (-100=very negative, 0=neutral, +100=very positive)
3. Novelty: 0-10 (0=completely common, 10=extremely unique/surprising)
4. Energy: 1-5 (1=very low energy, 5=very high energy)

Format: '##,##,#.#,#.#'
You MUST respond with ONLY the numbers in the specified format. NO other text, NO explanations, just the comma-separated numbers.
Example: '80,-34,4.3,3.2'"""


def quality_vector(topic: str, text: str) -> str:
    return (
        "Analyze this transcript segment across multiple dimensions.\n\n"
        f"Prompt: {topic}\n\n"
        "Transcript segment:\n"
        f"{text}"
    )


def relevance(subject: str, text: str) -> str:
    return f"Score from 0 to 100 how relevant this text is to the subject. Subject: '{subject}'. Text: '{text}'"


def dialogue_reply(previous: str, candidate: str) -> str:
    return (
        "You are assisting in sequencing dialogue clips.\n"
        f'Segment A: "{previous}"\n'
        f'Segment B: "{candidate}"\n'
        "On a scale from 0 to 100, where 0 means Segment B does not answer or build on "
        "Segment A at all, and 100 means it is an excellent, natural reply, output ONLY the integer score."
    )


def story_start(subject: str, text: str) -> str:
    return f"Rate 0-100 how good this is as story start about '{subject}': '{text}'"


def story_next(subject: str, current: str, candidate: str) -> str:
    return (
        f"Rate 0-100 how well this follows in story about '{subject}'. "
        f"Current: '{current}'. Next: '{candidate}'"
    )
