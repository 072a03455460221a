"""Pydantic models for the run configuration read from GW1H_* environment variables."""

from __future__ import annotations

import os
from typing import Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from gw1h.errors import ConfigurationError

DEFAULT_GW_EXE = r"C:\Program Files (x86)\Guild Wars\Gw.exe"
DEFAULT_TOOLBOX_EXE = r"C:\Program Files (x86)\GWToolbox\GWToolbox.exe"


class RoleSelection(BaseModel):
    """Which of the two roles this run starts. Read once, immutable."""

    model_config = ConfigDict(frozen=True)

    primary: bool = False
    dependent: bool = False

    @property
    def any(self) -> bool:
        return self.primary or self.dependent

    def describe(self) -> str:
        roles = [name for name, on in (("gw", self.primary), ("toolbox", self.dependent)) if on]
        return ",".join(roles) or "none"


class Settings(BaseModel):
    """Everything a run needs from its environment."""

    model_config = ConfigDict(frozen=True)

    roles: RoleSelection = Field(default_factory=RoleSelection)
    gw_pid: Optional[str] = Field(None, description="Raw GW1H_GW_PID for toolbox-only runs")
    wine: str = Field("wine", min_length=1, description="Wine loader binary")
    wine_arch: str = Field("win64", min_length=1)
    wine_prefix: str = Field(..., min_length=1)
    gw_exe: str = Field(DEFAULT_GW_EXE, min_length=1)
    toolbox_exe: str = Field(DEFAULT_TOOLBOX_EXE, min_length=1)
    log_level: Optional[str] = None
    log_source: bool = False
    log_file: Optional[str] = None
    log_format: Literal["text", "json"] = "text"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> Settings:
        """
        Build settings from ``environ`` (default: os.environ).
        Role flags and GW1H_LOG_SOURCE are presence flags: an empty value still counts.
        Raises ConfigurationError if a value is rejected.
        """
        env = os.environ if environ is None else environ
        prefix = env.get("GW1H_WINE_PREFIX")
        if prefix is None:
            prefix = env.get("PWD") or os.getcwd()
        payload = {
            "roles": RoleSelection(primary="GW1H_GW" in env, dependent="GW1H_TOOLBOX" in env),
            "gw_pid": env.get("GW1H_GW_PID"),
            "wine": env.get("GW1H_WINE", "wine"),
            "wine_arch": env.get("GW1H_WINE_ARCH", "win64"),
            "wine_prefix": prefix,
            "gw_exe": env.get("GW1H_GW_EXE", DEFAULT_GW_EXE),
            "toolbox_exe": env.get("GW1H_TOOLBOX_EXE", DEFAULT_TOOLBOX_EXE),
            "log_level": env.get("GW1H_LOG_LEVEL"),
            "log_source": "GW1H_LOG_SOURCE" in env,
            "log_file": env.get("GW1H_LOG_FILE") or None,
            "log_format": env.get("GW1H_LOG_FORMAT") or "text",
        }
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
            )
            raise ConfigurationError(f"invalid configuration: {problems}") from exc

    def with_overrides(self, primary: Optional[bool] = None, dependent: Optional[bool] = None,
                       gw_pid: Optional[str] = None) -> Settings:
        """Return a copy with command-line overrides applied; None keeps the environment value."""
        roles = RoleSelection(
            primary=self.roles.primary if primary is None else primary,
            dependent=self.roles.dependent if dependent is None else dependent,
        )
        update: dict = {"roles": roles}
        if gw_pid is not None:
            update["gw_pid"] = gw_pid
        return self.model_copy(update=update)

    def preset_pid(self) -> int:
        """Parse GW1H_GW_PID. Raises ConfigurationError if it is missing or not a positive integer."""
        if self.gw_pid is None:
            raise ConfigurationError("GW1H_GW_PID not set")
        try:
            pid = int(self.gw_pid.strip())
        except ValueError:
            raise ConfigurationError(f"error parsing gw pid {self.gw_pid!r}: not an integer") from None
        if pid <= 0:
            raise ConfigurationError(f"error parsing gw pid {self.gw_pid!r}: must be positive")
        return pid


__all__ = ["DEFAULT_GW_EXE", "DEFAULT_TOOLBOX_EXE", "RoleSelection", "Settings"]
