"""
Application settings and configuration

Uses pydantic-settings for type-safe configuration via environment variables.
All settings use YAMDR_ prefix (e.g., YAMDR_STRICT_MODE=true).

Settings can also be loaded from a .env file in the working directory.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Application configuration via environment variables.

    Environment variables use YAMDR_ prefix.

    Examples:
        YAMDR_STRICT_MODE=true
        YAMDR_PYGMENTS_STYLE=monokai
        YAMDR_GRAPH_ENGINE=neato
    """

    model_config = SettingsConfigDict(
        env_prefix="YAMDR_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Prose rendering
    placeholder_prefix: str = Field(
        default="\ue000SPAN",
        description=(
            "Prefix for interpolation placeholders while prose goes through the "
            "markdown renderer (private-use code point, survives CommonMark normalization)"
        ),
    )

    placeholder_suffix: str = Field(
        default="\ue000",
        description="Suffix for interpolation placeholders",
    )

    # Round-trip annotations
    annotation_marker: str = Field(
        default="# >",
        description="Comment marker that introduces a computed result in round-trip output",
    )

    span_directive: str = Field(
        default="|>",
        description="Token separating an interpolation expression from its format spec",
    )

    # Execution
    strict_mode: bool = Field(
        default=False,
        description="Strict mode: the first block-scoped error aborts the render pass",
    )

    # Output configuration
    pygments_style: str = Field(
        default="default",
        description="Pygments style used to highlight Code blocks",
    )

    graph_engine: str = Field(
        default="dot",
        description="Graphviz layout engine for Graph blocks",
    )

    graph_format: str = Field(
        default="svg",
        description="Graphviz output format for Graph blocks",
    )

    chart_width: float = Field(
        default=6.0,
        description="Width in inches of DynamicChart and Plotters charts",
    )

    chart_height: float = Field(
        default=4.0,
        description="Height in inches of DynamicChart and Plotters charts",
    )

    def placeHolder_make(self, index: int) -> str:
        """
        Generate the placeholder standing in for the interpolation span at index.

        Args:
            index: Zero-based index of the span within its prose segment

        Returns:
            Placeholder string (e.g., "\\ue000SPAN0\\ue000")

        Example:
            >>> settings = AppSettings()
            >>> settings.placeHolder_make(0)
            '\\ue000SPAN0\\ue000'
        """
        return f"{self.placeholder_prefix}{index}{self.placeholder_suffix}"

    def spanIndex_extract(self, placeholder: str) -> int | None:
        """
        Extract the span index from a placeholder string.

        Returns:
            Span index if valid placeholder, None otherwise
        """
        if not placeholder.startswith(self.placeholder_prefix):
            return None
        if not placeholder.endswith(self.placeholder_suffix):
            return None

        content = placeholder[len(self.placeholder_prefix) : -len(self.placeholder_suffix)]

        try:
            return int(content)
        except ValueError:
            return None


# Singleton instance - import this in your code
appsettings = AppSettings()
