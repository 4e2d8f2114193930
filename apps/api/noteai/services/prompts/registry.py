from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PromptDefinition:
    key: str
    description: str
    used_by: str
    template: str


_PROMPTS: dict[str, PromptDefinition] = {
    "extract_contact_system": PromptDefinition(
        key="extract_contact_system",
        description=(
            "System instructions for turning one free-text line into a structured contact. "
            "Lists the owner's existing labels so the model reuses them before inventing new ones."
        ),
        used_by="noteai/services/llm/client.py::LanguageModelClient.extract_contact",
        template=(
            "You are an AI assistant that extracts structured contact information from natural language input.\n"
            "Extract the following fields if present:\n"
            "1. Name (full name of the person)\n"
            "2. Phone number (any phone number format)\n"
            "3. Email address\n"
            "4. Description (any details about the person, their role, where you met them, etc.)\n"
            "5. Suggested labels (based on the description, suggest 1-3 labels that would categorize this contact)\n\n"
            "Available labels: {existing_labels}\n\n"
            "Suggest new labels if none of the existing ones fit well.\n"
            "Format your response as a JSON object with fields: name, phoneNumber, email, description, "
            "and suggestedLabels (array of strings).\n"
            "If any field is missing, set it to null. suggestedLabels must always be an array."
        ),
    ),
    "semantic_search_system": PromptDefinition(
        key="semantic_search_system",
        description=(
            "System instructions for semantic contact search. "
            "Forces strict JSON output with the matching contact ids and a short explanation."
        ),
        used_by="noteai/services/llm/client.py::LanguageModelClient.semantic_search",
        template=(
            "You are an AI assistant that helps search through contacts based on natural language queries.\n"
            "Given a list of contacts and a search query, return the IDs of contacts that match the query.\n"
            "Consider names, descriptions, and labels when matching.\n"
            "Provide semantic understanding rather than just exact keyword matching.\n\n"
            "Format your response as a JSON object with:\n"
            "1. matchedIds: An array of contact UUIDs that match the query\n"
            "2. explanation: A brief explanation of why these contacts were selected"
        ),
    ),
    "semantic_search_user": PromptDefinition(
        key="semantic_search_user",
        description="User prompt carrying the search query and a plain-text snapshot of every contact.",
        used_by="noteai/services/llm/client.py::LanguageModelClient.semantic_search",
        template=(
            "Search query: {query}\n\n"
            "Available labels: {existing_labels}\n\n"
            "Available contacts:\n"
            "{contacts_block}"
        ),
    ),
    "suggest_labels_system": PromptDefinition(
        key="suggest_labels_system",
        description=(
            "System instructions for label suggestion during device-contact import. "
            "Returns a JSON object with a labels array."
        ),
        used_by="noteai/services/llm/client.py::LanguageModelClient.suggest_labels",
        template=(
            "You are an AI assistant that suggests appropriate labels for contacts based on their description.\n"
            "Suggest 1-3 relevant labels that would help categorize this contact.\n\n"
            "Available labels: {existing_labels}\n\n"
            "Suggest new labels if none of the existing ones fit well.\n"
            'Format your response as a JSON object: {{"labels": ["Label", ...]}}.'
        ),
    ),
    "parse_command_system": PromptDefinition(
        key="parse_command_system",
        description=(
            "System instructions for classifying a command-mode input line into create_label, "
            "delete_label or other, with the label name when one applies."
        ),
        used_by="noteai/services/llm/client.py::LanguageModelClient.parse_command",
        template=(
            "You are an AI assistant that processes natural language commands for a contact management app.\n"
            "Identify the type of command and extract relevant parameters.\n\n"
            "Supported commands:\n"
            '1. Create a label: "create a label called X", "add label X", etc.\n'
            '2. Delete a label: "delete label X", "remove label X", etc.\n'
            "3. Other commands: Identify any other type of command and explain what it does\n\n"
            "Existing labels: {existing_labels}\n\n"
            "Format your response as a JSON object with fields:\n"
            '- commandType: "create_label", "delete_label", or "other"\n'
            "- labelName: (for create/delete commands) the name of the label, otherwise null\n"
            "- explanation: Description of what the command does"
        ),
    ),
}


def get_prompt_definitions() -> list[PromptDefinition]:
    return list(_PROMPTS.values())


def render_prompt(key: str, **variables: str) -> str:
    prompt = _PROMPTS.get(key)
    if prompt is None:
        raise KeyError(f"Unknown prompt key: {key}")

    try:
        return prompt.template.format(**variables)
    except KeyError as exc:
        missing_key = str(exc).strip("'")
        raise ValueError(f"Missing variable '{missing_key}' for prompt '{key}'") from exc
