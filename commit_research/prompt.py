COMMIT_SUMMARY_PROMPT = """\
Analyze the code changes and extract technical details into the specified \
structure. Focus on technical aspects that would indicate developer expertise \
and skills required. Be concise and specific.
"""

README_SUMMARY_PROMPT = """\
Provide a concise summary of this repository's README, focusing on the \
project's purpose, key features, and technical aspects.
"""


def build_commit_prompt(patch: str, readme_summary: str | None = None) -> str:
    if readme_summary is None:
        return patch
    return (
        f"Repository README Summary:\n{readme_summary}\n\n"
        f"Commit Changes:\n{patch}"
    )
