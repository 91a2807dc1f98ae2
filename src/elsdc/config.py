"""
Configuration management for the ELSDc bindings.

Loads YAML configuration with sensible defaults for detection, overlap
scoring, rendering and output.
"""

import os
from dataclasses import asdict, dataclass, field
from typing import List, Optional

import yaml

from elsdc.errors import ConfigError


@dataclass
class DetectorConfig:
    """Configuration for the native detector binding."""
    library_path: Optional[str] = None  # falls back to $ELSDC_LIBRARY, then find_library
    detect_symbol: str = "elsdc_detect"
    free_symbol: str = "elsdc_free_outputs"


@dataclass
class CompatConfig:
    """Configuration for pairwise IoU rasterization."""
    canvas_margin: int = 2
    max_canvas_side: int = 4096


@dataclass
class RenderConfig:
    """Configuration for overlay rendering."""
    color: List[int] = field(default_factory=lambda: [0, 255, 0])  # BGR
    thickness_scale: float = 0.02
    min_thickness: int = 1
    max_thickness: int = 4


@dataclass
class OutputConfig:
    """Configuration for result files."""
    image_path: str = "result/output_all_rings.png"
    matrix_path: str = "result/compatibility_matrix.txt"
    precision: int = 4
    write_summary: bool = True


@dataclass
class ImageConfig:
    """Configuration for input image handling."""
    normalize: bool = False
    normalize_max: float = 255.0


@dataclass
class TracingConfig:
    """Configuration for runtime tracing."""
    enabled: bool = False
    level: str = "INFO"
    file_path: str = None
    json_output: bool = False


@dataclass
class ElsdcConfig:
    """Complete configuration."""
    detector: DetectorConfig = field(default_factory=DetectorConfig)
    compat: CompatConfig = field(default_factory=CompatConfig)
    render: RenderConfig = field(default_factory=RenderConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    image: ImageConfig = field(default_factory=ImageConfig)
    tracing: TracingConfig = field(default_factory=TracingConfig)


SECTIONS = ("detector", "compat", "render", "output", "image", "tracing")


def load_config(config_path=None):
    """
    Load configuration from YAML file.

    Falls back to defaults for any missing values. Raises ConfigError when
    the file is not valid YAML or its top level is not a mapping.
    """
    config = ElsdcConfig()

    if config_path and os.path.exists(config_path):
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                yaml_data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"cannot read config {config_path}", operation="load_config", cause=e)

        if not isinstance(yaml_data, dict):
            raise ConfigError(
                f"expected a mapping of sections in {config_path}, got {type(yaml_data).__name__}",
                operation="load_config",
            )

        config = _merge_config(config, yaml_data)

    return config


def _merge_config(config, yaml_data):
    """Merge YAML data into config dataclass. Unknown keys are ignored."""
    for section_name in SECTIONS:
        values = yaml_data.get(section_name)
        if not isinstance(values, dict):
            continue
        section = getattr(config, section_name)
        for key, value in values.items():
            if hasattr(section, key):
                setattr(section, key, value)

    return config


def save_default_config(path):
    """Save default configuration to YAML file for reference."""
    yaml_data = asdict(ElsdcConfig())

    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(yaml_data, f, default_flow_style=False, sort_keys=False)
