"""Helpers shared by the command modules."""

from typing import Any, Optional

import click
from pydantic import ValidationError

from core.config import PipelineSettings


def settings_with(settings: PipelineSettings, **overrides: Optional[Any]) -> PipelineSettings:
    """
    Copy settings with the given fields replaced.

    ``None`` means "option not given" and keeps the current value. The copy
    is re-validated, so option strings become the settings' enum types.

    Raises:
        click.UsageError: If an override fails validation
    """
    updates = {k: v for k, v in overrides.items() if v is not None}
    if not updates:
        return settings
    try:
        return PipelineSettings(**{**settings.model_dump(), **updates})
    except ValidationError as e:
        raise click.UsageError(str(e))
