"""
Prompt texts for enrichment requests.
"""

from __future__ import annotations

from src.enrichment.models import ColumnType

BASE_ROLE = "You are an AI assistant helping to enrich data."

COLUMN_INSTRUCTIONS: dict[ColumnType, str] = {
    ColumnType.BOOLEAN: 'Respond with only "yes" or "no".',
    ColumnType.NUMBER: "Respond with only a single number.",
    ColumnType.TEXT: "Provide a concise, informative response.",
}

NO_EXTRACTION_SENTINEL = "NO_EXTRACTION_POSSIBLE"

EXTRACTION_PROMPT = (
    "You are an extraction assistant. Extract the name of the health system, hospital, "
    "or healthcare organization that needs to be matched against a database. Return ONLY "
    "the name with no additional text or explanation. If multiple names are mentioned, "
    "return the most prominent one. If no organization name is mentioned, respond with "
    f'"{NO_EXTRACTION_SENTINEL}".'
)

BATCH_EXTRACTION_PROMPT = (
    "You are an extraction assistant. For each item, extract the name of any health system, "
    "hospital, or healthcare organization mentioned.\n"
    "Return ONLY the extracted name for each item with no additional text or explanation. "
    "If multiple names are mentioned, return the most prominent one.\n"
    f'If no organization name is mentioned, respond with "{NO_EXTRACTION_SENTINEL}".\n'
    'Always start your response with "Item X (ID: [id]): " followed by the extracted name.'
)

MATCHES_HEADER = "I found these detailed matches in the Definitive Healthcare database:"

CONTEXT_FOOTER = (
    "Use this information to help answer the question. Don't explicitly mention that "
    "you're using Definitive Healthcare data in your response."
)

BATCH_CONTEXT_HEADER = (
    "You have access to healthcare system data from Definitive Healthcare. Here is "
    "information about specific health systems relevant to these items:"
)

BATCH_CONTEXT_FOOTER = (
    "Use this information to help with your classifications. Don't explicitly mention "
    "that you're using Definitive Healthcare data in your response."
)

GENERIC_BATCH_CONTEXT = (
    "You have access to healthcare system data. Consider healthcare-specific factors "
    "when analyzing these items."
)


def system_instruction(column_type: ColumnType, context: str | None = None) -> str:
    """Base role plus the column directive, with optional appended context."""
    instruction = f"{BASE_ROLE} {COLUMN_INSTRUCTIONS[column_type]}"
    if context:
        instruction = f"{instruction}\n\n{context}"
    return instruction


def batch_system_instruction(
    column_type: ColumnType,
    item_count: int,
    context: str | None = None,
) -> str:
    """System instruction for a multi-item prompt."""
    instruction = (
        f"{BASE_ROLE} {COLUMN_INSTRUCTIONS[column_type]}\n"
        f"Answer each of the following {item_count} items independently.\n"
        "For each item, provide only the answer with no explanation or reasoning.\n"
        'Always start your response to each item with "Item X (ID: [id]): " '
        "followed immediately by your answer.\n"
        "Keep your answers as concise as possible."
    )
    if context:
        instruction = f"{instruction}\n\n{context}"
    return instruction


def neutral_context(directory_size: int) -> str:
    """Context stating the directory was checked without a match."""
    return (
        f"I checked our Definitive Healthcare database of {directory_size} health systems "
        "and did not find any matches for the organizations mentioned in your query. "
        "Please use your general knowledge to answer the question."
    )


def batch_neutral_context(directory_size: int) -> str:
    return (
        f"You checked a database of {directory_size} health systems and did not find any "
        "matches for the organizations mentioned. Please use your general knowledge to "
        "answer the questions."
    )

