"""Build matrix input providers.

A BuildMatrix can be assembled from one of several interchangeable
sources, so the orchestration loop never cares where values came from:
- defaults_provider(): the fixed flavor and build type set from settings
- file_provider(): a YAML/JSON matrix file
- interactive_provider(): line-by-line prompts

Entry points must exist before a target is accepted. The interactive
provider re-prompts on a missing file; the other providers are checked with
validate_entry_points().
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from pydantic import ValidationError

from apptoolkit.builds.models import BuildMatrix, BuildType, Flavor

if TYPE_CHECKING:
    from apptoolkit.config import Settings

logger = logging.getLogger(__name__)

Prompt = Callable[[str], str]
Echo = Callable[[str], None]

# Numeric menu shown by the interactive provider
ALL_CHOICE = "0"
BUILD_TYPE_MENU: dict[str, BuildType] = {
    "1": BuildType.APK,
    "2": BuildType.APPBUNDLE,
    "3": BuildType.IPA,
}
BUILD_TYPE_LABELS: dict[BuildType, str] = {
    BuildType.APK: "APK",
    BuildType.APPBUNDLE: "AAB (App Bundle)",
    BuildType.IPA: "IPA",
}


class InvalidInputError(Exception):
    """Raised when build matrix input is unusable."""

    def __init__(self, message: str, code: str = "invalid_input") -> None:
        super().__init__(message)
        self.code = code


def parse_build_type_selection(
    text: str,
    on_invalid: Echo | None = None,
) -> list[BuildType]:
    """Parse a comma-separated build type menu selection.

    "1", "2" and "3" select a single type, "0" selects all of them.
    Unknown choices are reported through on_invalid and ignored.

    Args:
        text: Raw user input, e.g. "1,3".
        on_invalid: Called with each unrecognized choice.

    Returns:
        Selected build types without duplicates, in selection order.

    Raises:
        InvalidInputError: If no valid build type was selected.
    """
    selected: list[BuildType] = []
    for raw in text.split(","):
        choice = raw.strip()
        if choice == ALL_CHOICE:
            selected = list(BUILD_TYPE_MENU.values())
        elif choice in BUILD_TYPE_MENU:
            selected.append(BUILD_TYPE_MENU[choice])
        else:
            logger.debug("Ignoring invalid build type choice %r", choice)
            if on_invalid is not None:
                on_invalid(choice)

    selected = list(dict.fromkeys(selected))
    if not selected:
        raise InvalidInputError(
            "No valid build types selected", code="no_build_types"
        )
    return selected


def parse_build_types(values: list[str]) -> list[BuildType]:
    """Convert build type names (apk, appbundle, ipa) to BuildType.

    Raises:
        InvalidInputError: If a name is not a known build type.
    """
    build_types: list[BuildType] = []
    for value in values:
        try:
            build_types.append(BuildType(value.strip().lower()))
        except ValueError:
            valid = ", ".join(bt.value for bt in BuildType)
            raise InvalidInputError(
                f"Unknown build type '{value}' (valid: {valid})",
                code="invalid_build_type",
            ) from None
    return build_types


def _make_matrix(
    flavors: list[Flavor],
    build_types: list[BuildType],
    use_flavors: bool,
    code: str,
) -> BuildMatrix:
    try:
        return BuildMatrix(
            flavors=flavors if use_flavors else [],
            build_types=build_types,
            use_flavors=use_flavors,
        )
    except ValidationError as e:
        raise InvalidInputError(f"Invalid build matrix: {e}", code=code) from e


def defaults_provider(settings: Settings, use_flavors: bool = True) -> BuildMatrix:
    """Build the matrix from the configured defaults.

    Args:
        settings: Application settings.
        use_flavors: False to skip the flavor dimension.

    Returns:
        BuildMatrix from default_flavors and default_build_types.
    """
    try:
        flavors = [
            Flavor(name=name, entry_point=entry)
            for name, entry in settings.default_flavors.items()
        ]
    except ValidationError as e:
        raise InvalidInputError(
            f"Invalid default flavors: {e}", code="invalid_flavor"
        ) from e

    build_types = parse_build_types(settings.default_build_types)
    return _make_matrix(flavors, build_types, use_flavors, code="invalid_defaults")


def _parse_flavor_entries(raw: Any) -> list[Flavor]:
    if raw is None:
        return []
    if isinstance(raw, dict):
        return [Flavor(name=str(k), entry_point=str(v)) for k, v in raw.items()]
    if isinstance(raw, list):
        return [Flavor.model_validate(item) for item in raw]
    raise ValueError(f"'flavors' must be a mapping or a list, got {type(raw).__name__}")


def file_provider(path: Path, use_flavors: bool | None = None) -> BuildMatrix:
    """Load the matrix from a YAML (or JSON) file.

    Expected layout::

        flavors:
          dev: lib/main_dev.dart
          prod: lib/main_prod.dart
        build_types: [apk, appbundle]
        no_flavor: false

    "flavors" may also be a list of {name, entry_point} mappings.

    Args:
        path: Matrix file path.
        use_flavors: Overrides the file's no_flavor setting when given.

    Returns:
        BuildMatrix described by the file.

    Raises:
        InvalidInputError: If the file is missing or malformed.
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise InvalidInputError(
            f"Matrix file not found: {path}", code="invalid_matrix_file"
        ) from None
    except yaml.YAMLError as e:
        raise InvalidInputError(
            f"Invalid matrix file {path}: {e}", code="invalid_matrix_file"
        ) from e

    if not isinstance(data, dict):
        raise InvalidInputError(
            f"Expected a mapping in {path}, got {type(data).__name__}",
            code="invalid_matrix_file",
        )

    if use_flavors is None:
        use_flavors = not bool(data.get("no_flavor", False))

    try:
        flavors = _parse_flavor_entries(data.get("flavors"))
    except (ValidationError, ValueError) as e:
        raise InvalidInputError(
            f"Invalid flavors in {path}: {e}", code="invalid_matrix_file"
        ) from e

    raw_types = data.get("build_types", [bt.value for bt in BuildType])
    if not isinstance(raw_types, list):
        raise InvalidInputError(
            f"'build_types' must be a list in {path}", code="invalid_matrix_file"
        )
    build_types = parse_build_types([str(t) for t in raw_types])

    return _make_matrix(flavors, build_types, use_flavors, code="invalid_matrix_file")


def validate_entry_points(matrix: BuildMatrix, base_dir: Path) -> None:
    """Check every flavor's entry point exists relative to base_dir.

    Raises:
        InvalidInputError: On the first missing entry point.
    """
    if not matrix.use_flavors:
        return
    for flavor in matrix.flavors:
        if not (base_dir / flavor.entry_point).is_file():
            raise InvalidInputError(
                f"Entry point for flavor '{flavor.name}' does not exist: "
                f"{flavor.entry_point}",
                code="missing_entry_point",
            )


def _prompt_flavor_count(prompt: Prompt) -> int:
    raw = prompt("Number of flavors?").strip()
    try:
        count = int(raw)
    except ValueError:
        raise InvalidInputError(
            f"Number of flavors must be a whole number, got '{raw}'",
            code="invalid_flavor_count",
        ) from None
    if count < 1:
        raise InvalidInputError(
            f"Number of flavors must be at least 1, got {count}",
            code="invalid_flavor_count",
        )
    return count


def _prompt_flavor(prompt: Prompt, echo: Echo, base_dir: Path, index: int) -> Flavor:
    while True:
        name = prompt(f"Flavor {index} name").strip()
        try:
            Flavor(name=name, entry_point="-")
        except ValidationError:
            echo(f"Invalid flavor name '{name}', try again")
            continue
        break

    entry_prompt = f"Entry point location of flavor {index} (eg. lib/main_{name}.dart)"
    entry_point = prompt(entry_prompt).strip()
    while not entry_point or not (base_dir / entry_point).is_file():
        echo(f"File {entry_point} does not exist, try again")
        entry_point = prompt(entry_prompt).strip()

    return Flavor(name=name, entry_point=entry_point)


def prompt_build_types(prompt: Prompt, echo: Echo) -> list[BuildType]:
    """Show the numeric build type menu and parse the answer."""
    echo("Select the build type(s) you want to generate:")
    for number, build_type in BUILD_TYPE_MENU.items():
        echo(f"  {number}. {BUILD_TYPE_LABELS[build_type]}")
    echo(f"  {ALL_CHOICE}. All")

    answer = prompt("Enter your choice (comma-separated numbers)")
    return parse_build_type_selection(
        answer,
        on_invalid=lambda choice: echo(f"Invalid choice: '{choice}'. Ignoring."),
    )


def interactive_provider(
    prompt: Prompt,
    echo: Echo,
    base_dir: Path,
    use_flavors: bool = True,
) -> BuildMatrix:
    """Assemble the matrix by asking the user.

    Asks for the number of flavors, then each flavor's name and entry point
    (re-prompting until the entry point exists), then the build types.

    Args:
        prompt: Reads one answer for the given question.
        echo: Prints a line to the user.
        base_dir: Directory entry points are resolved against.
        use_flavors: False to only ask for build types.

    Returns:
        BuildMatrix built from the answers.

    Raises:
        InvalidInputError: On an invalid flavor count or build type selection.
    """
    flavors: list[Flavor] = []
    if use_flavors:
        count = _prompt_flavor_count(prompt)
        for index in range(1, count + 1):
            flavors.append(_prompt_flavor(prompt, echo, base_dir, index))

    build_types = prompt_build_types(prompt, echo)
    return _make_matrix(flavors, build_types, use_flavors, code="invalid_input")


__all__ = [
    "ALL_CHOICE",
    "BUILD_TYPE_MENU",
    "InvalidInputError",
    "defaults_provider",
    "file_provider",
    "interactive_provider",
    "parse_build_type_selection",
    "parse_build_types",
    "prompt_build_types",
    "validate_entry_points",
]
