from pathlib import Path

import yaml
from pydantic import ValidationError

from tinyblog.rules.models import Rules


def _extract_yaml(content: str) -> str:
    """Return the first ```yaml fenced block, or the whole text when there is none."""
    block: list[str] | None = None
    for line in content.splitlines():
        marker = line.strip()
        if block is None:
            if marker.startswith("```yaml"):
                block = []
            continue
        if marker.startswith("```"):
            break
        block.append(line)
    return content if block is None else "\n".join(block)


def load_rules(path: Path) -> Rules:
    """
    Load and validate the rules file.

    An empty file yields the defaults. The rules may also sit inside a fenced
    yaml block of a Markdown document.

    Raises:
        FileNotFoundError: If the file is missing
        ValueError: If the YAML or the schema is invalid
    """
    if not path.exists():
        raise FileNotFoundError(f"Rules file not found at: {path}")

    try:
        data = yaml.safe_load(_extract_yaml(path.read_text()))
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML syntax in rules file: {e}") from e

    try:
        return Rules.model_validate(data or {})
    except ValidationError as e:
        raise ValueError(f"Rules validation failed:\n{e}") from e


def load_rules_or_default(path: Path) -> Rules:
    """Load the rules file when present, otherwise fall back to built-in defaults."""
    if not path.exists():
        return Rules()
    return load_rules(path)
