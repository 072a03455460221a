"""Launch Guild Wars and GWToolbox under wine, handing the discovered gw pid to toolbox."""

__version__ = "0.1.0"

from .cancellation import CancellationToken, install_interrupt_handler
from .discovery import PidDiscovery, choose_identifier
from .handoff import PidHandoff
from .launchers import DependentLauncher, PrimaryLauncher
from .orchestrator import Orchestrator
from .report import RunReport
from .settings import RoleSelection, Settings

__all__ = [
    "CancellationToken",
    "DependentLauncher",
    "Orchestrator",
    "PidDiscovery",
    "PidHandoff",
    "PrimaryLauncher",
    "RoleSelection",
    "RunReport",
    "Settings",
    "choose_identifier",
    "install_interrupt_handler",
    "__version__",
]
