"""
Configuration models using Pydantic for validation.

All configuration is loaded from config.json and validated at startup.
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class SerialConfig(BaseModel):
    """Serial port configuration."""

    port: str = Field(default="/dev/ttyACM0", description="Serial port name (e.g., COM3, /dev/ttyUSB0)")
    baud: int = Field(default=19200, description="Baud rate (AUX bus runs at 19200)")
    timeout_seconds: float = Field(
        default=1.0, gt=0, le=30, description="Reply timeout for a single command"
    )


class FocuserConfig(BaseModel):
    """Focuser motion configuration."""

    polling_interval_ms: int = Field(
        default=500, ge=50, le=10000, description="Host poll tick interval (ms)"
    )
    default_max_position: int = Field(
        default=60000, ge=1000, le=0xFFFFFF,
        description="Upper position limit used until limits are read from hardware"
    )
    position_jitter_ticks: int = Field(
        default=1, ge=0, le=100,
        description="Position changes up to this many ticks are not reported"
    )
    backlash_steps: int = Field(
        default=0, ge=-500, le=500, description="Backlash offset (signed, not yet applied)"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL"
    )
    file: Optional[str] = Field(
        default="celestron_focuser.log",
        description="Log file path (None for console only)"
    )
    protocol_level: Optional[str] = Field(
        default=None,
        description="Level for the AUX frame loggers (celestron_focuser.protocol); inherits level when None"
    )

    @field_validator("level", "protocol_level")
    @classmethod
    def validate_level(cls, v):
        """Validate logging level."""
        if v is None:
            return v
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


class SimulatorConfig(BaseModel):
    """Simulated focuser configuration."""

    enabled: bool = Field(default=False, description="Use simulator instead of real hardware")
    initial_position: int = Field(default=30000, ge=0, le=0xFFFFFF, description="Starting position")
    min_limit: int = Field(default=2000, ge=0, description="Lower hard stop reported by the focuser")
    max_limit: int = Field(default=58000, ge=1, description="Upper hard stop reported by the focuser")
    movement_speed_steps_per_sec: int = Field(
        default=2000, ge=1, description="Simulated movement speed"
    )
    firmware_version: str = Field(default="7.11.5130", description="Firmware version (major.minor[.build])")
    echo_commands: bool = Field(
        default=True, description="Echo transmitted frames back, like the hand controller port"
    )
    response_latency_ms: int = Field(
        default=0, ge=0, le=5000, description="Artificial response delay (ms)"
    )
    inject_timeout: bool = Field(default=False, description="Never reply to commands")
    inject_checksum_error_rate: float = Field(
        default=0.0, ge=0.0, le=1.0, description="Checksum error rate (0.0-1.0)"
    )

    @field_validator("firmware_version")
    @classmethod
    def validate_firmware_version(cls, v):
        """Validate firmware version format."""
        parts = v.split(".")
        if len(parts) not in (2, 3) or not all(p.isdigit() for p in parts):
            raise ValueError("Firmware version must be 'major.minor' or 'major.minor.build'")
        if any(int(p) > 255 for p in parts[:2]) or (len(parts) == 3 and int(parts[2]) > 0xFFFF):
            raise ValueError("Firmware version field out of range")
        return v

    @field_validator("max_limit")
    @classmethod
    def validate_max_greater_than_min(cls, v, info):
        """Ensure max_limit > min_limit."""
        if "min_limit" in info.data and v <= info.data["min_limit"]:
            raise ValueError(f"max_limit ({v}) must be greater than min_limit ({info.data['min_limit']})")
        return v


class AppConfig(BaseModel):
    """Root configuration model."""

    model_config = ConfigDict(extra="forbid")

    serial: SerialConfig = Field(default_factory=SerialConfig)
    focuser: FocuserConfig = Field(default_factory=FocuserConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    simulator: SimulatorConfig = Field(default_factory=SimulatorConfig)
