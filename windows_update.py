#!/usr/bin/env python3
"""
===============================================================================
                            WINDOWS UPDATE RUNNER
===============================================================================
Version: 1.0.0

Unattended-friendly Windows Update automation on top of the Windows Update
Agent (WUA) API.

Features:
• Search, download and install applicable software updates in one pass
• Per-update license (EULA) handling: prompt, auto-accept or auto-decline
• One timestamped log file per run
• Optional email notification on failure or completion
• Rich console output and JSON/CSV export of the run report
"""

import argparse
import csv
import ctypes
import json
import logging
import os
import platform
import smtplib
import sys
from dataclasses import dataclass, field
from datetime import datetime
from email.message import EmailMessage
from enum import Enum, IntEnum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

# Force UTF-8 encoding for standard output to avoid UnicodeEncodeError on Windows
if sys.stdout.encoding != "utf-8":
    try:
        sys.stdout.reconfigure(encoding="utf-8")
    except AttributeError:
        pass

from rich import box
from rich.align import Align
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

SCRIPT_NAME = "windows_update"
DEFAULT_CRITERIA = "IsInstalled=0 and Type='Software' and IsHidden=0"
SMTP_PASSWORD_ENV = "WINDOWS_UPDATE_SMTP_PASSWORD"

console = Console()
logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# ERRORS
# ═══════════════════════════════════════════════════════════════════════════════


class WindowsUpdateError(Exception):
    """Base error for the update runner."""


class ProviderError(WindowsUpdateError):
    """The update provider failed to search, download or install."""


class PrivilegeCheckError(WindowsUpdateError):
    """The operating system could not report the process privilege level."""


# ═══════════════════════════════════════════════════════════════════════════════
# CORE DATA MODELS
# ═══════════════════════════════════════════════════════════════════════════════


class RebootBehavior(IntEnum):
    """WUA InstallationRebootBehavior."""

    NEVER_REBOOTS = 0
    ALWAYS_REQUIRES_REBOOT = 1
    CAN_REQUEST_REBOOT = 2


class OperationResultCode(IntEnum):
    """WUA OperationResultCode."""

    NOT_STARTED = 0
    IN_PROGRESS = 1
    SUCCEEDED = 2
    SUCCEEDED_WITH_ERRORS = 3
    FAILED = 4
    ABORTED = 5


class EulaPolicy(Enum):
    """How updates with unaccepted license terms are handled."""

    PROMPT = "prompt"
    ACCEPT = "accept"
    DECLINE = "decline"


class WorkflowOutcome(Enum):
    """Terminal state of a workflow run."""

    COMPLETED = "completed"
    NOT_ELEVATED = "not_elevated"
    NO_UPDATES = "no_updates"
    ALL_SKIPPED = "all_skipped"
    NOTHING_DOWNLOADED = "nothing_downloaded"
    DRY_RUN = "dry_run"
    PROVIDER_ERROR = "provider_error"

    @property
    def exit_code(self) -> int:
        return EXIT_CODES[self]


EXIT_CODES = {
    WorkflowOutcome.COMPLETED: 0,
    WorkflowOutcome.DRY_RUN: 0,
    WorkflowOutcome.NOT_ELEVATED: 1,
    WorkflowOutcome.NO_UPDATES: 2,
    WorkflowOutcome.ALL_SKIPPED: 2,
    WorkflowOutcome.NOTHING_DOWNLOADED: 2,
    WorkflowOutcome.PROVIDER_ERROR: 3,
}
EXIT_INTERRUPTED = 130


@dataclass(eq=False)
class UpdateItem:
    """One candidate update as reported by the provider.

    Items compare by identity: the selection and install sets hold the very
    objects returned by the search.
    """

    title: str
    update_id: Optional[str] = None
    requires_user_input: bool = False
    eula_accepted: bool = True
    eula_text: Optional[str] = None
    downloaded: bool = False
    install_result_code: Optional[OperationResultCode] = None
    reboot_behavior: RebootBehavior = RebootBehavior.NEVER_REBOOTS
    handle: Any = field(default=None, repr=False)

    @property
    def may_require_reboot(self) -> bool:
        return self.reboot_behavior > RebootBehavior.NEVER_REBOOTS

    def to_dict(self) -> Dict:
        return {
            "title": self.title,
            "update_id": self.update_id,
            "requires_user_input": self.requires_user_input,
            "eula_accepted": self.eula_accepted,
            "downloaded": self.downloaded,
            "install_result": self.install_result_code.name
            if self.install_result_code is not None
            else None,
            "reboot_behavior": self.reboot_behavior.name,
        }


@dataclass
class InstallationResult:
    """Aggregate install outcome; item_results aligns with the install set."""

    result_code: OperationResultCode
    reboot_required: bool
    item_results: List[OperationResultCode] = field(default_factory=list)


@dataclass
class WorkflowReport:
    """Everything one run produced, in pipeline order."""

    outcome: Optional[WorkflowOutcome] = None
    search_result: Tuple[UpdateItem, ...] = ()
    selection: List[UpdateItem] = field(default_factory=list)
    install_set: List[UpdateItem] = field(default_factory=list)
    installation: Optional[InstallationResult] = None
    reboot_may_be_required: bool = False
    error: Optional[str] = None
    started: datetime = field(default_factory=datetime.now)

    def finish(self, outcome: WorkflowOutcome) -> "WorkflowReport":
        self.outcome = outcome
        return self

    def to_dict(self) -> Dict:
        selected = {id(item) for item in self.selection}
        return {
            "run_time": self.started.isoformat(),
            "outcome": self.outcome.value if self.outcome else None,
            "total_updates": len(self.search_result),
            "selected": len(self.selection),
            "installed": len(self.install_set),
            "reboot_required": bool(
                self.installation and self.installation.reboot_required
            ),
            "reboot_may_be_required": self.reboot_may_be_required,
            "error": self.error,
            "updates": [
                dict(item.to_dict(), selected=id(item) in selected)
                for item in self.search_result
            ],
        }


# ═══════════════════════════════════════════════════════════════════════════════
# CONFIGURATION SYSTEM
# ═══════════════════════════════════════════════════════════════════════════════


class UpdateConfig:
    """JSON-backed settings with defaults."""

    def __init__(self, config_file: Optional[Path] = None):
        self.config_dir = Path.home() / f".{SCRIPT_NAME}"
        self.config_file = (
            Path(config_file) if config_file else self.config_dir / "config.json"
        )
        self.diagnostics_file = self.config_dir / f"{SCRIPT_NAME}.log"

        self.settings = {
            "search": {
                "criteria": DEFAULT_CRITERIA,
            },
            "eula": {
                "policy": EulaPolicy.PROMPT.value,
            },
            "logging": {
                "log_dir": str(self.config_dir / "logs"),
            },
            "notify": {
                "enabled": False,
                "on_completion": False,
                "smtp_host": "",
                "smtp_port": 25,
                "use_tls": False,
                "username": "",
                "password": "",
                "sender": "",
                "recipients": [],
            },
        }
        self.load()

    def load(self):
        """Overlay the config file, if any, on the defaults."""
        if not self.config_file.exists():
            return
        try:
            overrides = json.loads(self.config_file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring config file {self.config_file}: {e}")
            return
        if not isinstance(overrides, dict):
            logger.warning(f"Ignoring config file {self.config_file}: not a JSON object")
            return
        self._overlay(self.settings, overrides)

    @classmethod
    def _overlay(cls, target: dict, overrides: dict):
        for key, value in overrides.items():
            current = target.get(key)
            if isinstance(current, dict) and isinstance(value, dict):
                cls._overlay(current, value)
            else:
                target[key] = value

    @property
    def log_dir(self) -> Path:
        return Path(self.settings["logging"]["log_dir"]).expanduser()

    @property
    def eula_policy(self) -> EulaPolicy:
        value = self.settings["eula"]["policy"]
        try:
            return EulaPolicy(value)
        except ValueError:
            logger.warning(f"Unknown eula.policy {value!r}, prompting instead")
            return EulaPolicy.PROMPT

    def run_log_path(self, started: datetime) -> Path:
        return self.log_dir / f"{SCRIPT_NAME}_{started.strftime('%Y%m%d_%H%M%S')}.log"


# ═══════════════════════════════════════════════════════════════════════════════
# RUN LOG
# ═══════════════════════════════════════════════════════════════════════════════


class RunLog:
    """Append-only operational log for one run.

    Lines look like ``2024-05-01 13:45:10 WARNING: message``. Writing never
    raises; a failed write is reported through the return value only.
    """

    FORMAT = "%(asctime)s %(levelname)s: %(message)s"
    DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

    STYLES = {
        logging.ERROR: ("❌", "red"),
        logging.WARNING: ("⚠️ ", "yellow"),
        logging.INFO: ("•", "cyan"),
    }

    def __init__(self, path: Path, echo: Optional[Console] = None):
        self.path = Path(path)
        self.echo = echo
        # Standalone logger: not registered with logging's manager, no parents.
        self._logger = logging.Logger(f"{__name__}.run")
        self._handlers: Dict[Path, logging.FileHandler] = {}

    def _handler(self, path: Path) -> logging.FileHandler:
        handler = self._handlers.get(path)
        if handler is None:
            path.parent.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(path, encoding="utf-8", delay=True)
            handler.setFormatter(logging.Formatter(self.FORMAT, self.DATE_FORMAT))
            self._handlers[path] = handler
        return handler

    def log(
        self,
        message: str,
        level: int = logging.INFO,
        path: Optional[Path] = None,
        no_clobber: bool = False,
    ) -> bool:
        """Append one line to ``path`` (the run log by default)."""
        target = Path(path) if path else self.path

        if no_clobber and target.exists():
            console.print(
                f"[red]❌ Log file {escape(str(target))} already exists, not writing[/red]"
            )
            return False

        try:
            handler = self._handler(target)
            record = self._logger.makeRecord(
                self._logger.name, level, str(target), 0, message, None, None
            )
            handler.handle(record)
        except OSError as e:
            logger.debug(f"Run log write to {target} failed: {e}")
            return False

        if self.echo is not None:
            icon, style = self.STYLES.get(level, ("•", "white"))
            self.echo.print(f"{icon} {message}", style=style, markup=False)
        return True

    def info(self, message: str) -> bool:
        return self.log(message, logging.INFO)

    def warning(self, message: str) -> bool:
        return self.log(message, logging.WARNING)

    def error(self, message: str) -> bool:
        return self.log(message, logging.ERROR)

    def close(self):
        for handler in self._handlers.values():
            handler.close()
        self._handlers.clear()


# ═══════════════════════════════════════════════════════════════════════════════
# PRIVILEGES
# ═══════════════════════════════════════════════════════════════════════════════


def is_elevated() -> bool:
    """Return True if the current process has administrative privileges."""
    try:
        if platform.system() == "Windows":
            return bool(ctypes.windll.shell32.IsUserAnAdmin())
        return os.geteuid() == 0
    except (AttributeError, OSError) as e:
        raise PrivilegeCheckError(f"Privilege query unavailable: {e}") from e


# ═══════════════════════════════════════════════════════════════════════════════
# NOTIFICATIONS
# ═══════════════════════════════════════════════════════════════════════════════


class EmailNotifier:
    """Sends plain-text status mail through an SMTP relay."""

    def __init__(self, settings: Dict, log: RunLog):
        self.settings = settings
        self.log = log

    @property
    def recipients(self) -> List[str]:
        recipients = self.settings.get("recipients") or []
        if isinstance(recipients, str):
            recipients = [r.strip() for r in recipients.split(",") if r.strip()]
        if not isinstance(recipients, (list, tuple)):
            return []
        return [str(r) for r in recipients]

    @property
    def enabled(self) -> bool:
        return bool(
            self.settings.get("enabled")
            and self.settings.get("smtp_host")
            and self.recipients
        )

    def build_message(self, subject: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self.settings.get("sender") or f"{SCRIPT_NAME}@{platform.node()}"
        message["To"] = ", ".join(self.recipients)
        message.set_content(body)
        return message

    def notify(self, subject: str, body: str) -> bool:
        """Send one message. Failures are logged, never raised."""
        if not self.enabled:
            self.log.info(f"Email notification disabled, not sending '{subject}'")
            return False

        try:
            host = self.settings["smtp_host"]
            port = int(self.settings.get("smtp_port") or 25)
            username = self.settings.get("username")
            password = self.settings.get("password") or os.environ.get(SMTP_PASSWORD_ENV, "")

            with smtplib.SMTP(host, port, timeout=30) as smtp:
                if self.settings.get("use_tls"):
                    smtp.starttls()
                if username:
                    smtp.login(username, password)
                smtp.send_message(self.build_message(subject, body))
        except Exception as e:
            self.log.error(f"Failed to send notification '{subject}': {e}")
            return False

        self.log.info(f"Notification '{subject}' sent to {', '.join(self.recipients)}")
        return True


# ═══════════════════════════════════════════════════════════════════════════════
# UPDATE PROVIDERS
# ═══════════════════════════════════════════════════════════════════════════════


class UpdateProvider:
    """Search/download/install capability driven by UpdateWorkflow."""

    def search(self, criteria: str) -> Tuple[UpdateItem, ...]:
        raise NotImplementedError

    def accept_eula(self, item: UpdateItem) -> None:
        raise NotImplementedError

    def download(self, items: Sequence[UpdateItem]) -> None:
        """Download ``items`` as one batch, refreshing ``downloaded`` in place."""
        raise NotImplementedError

    def install(self, items: Sequence[UpdateItem]) -> InstallationResult:
        raise NotImplementedError


def _dispatch(prog_id: str):
    """Create a COM object through pywin32."""
    try:
        import win32com.client
    except ImportError as e:
        raise ProviderError(
            "The Windows Update Agent API needs pywin32 on Windows"
        ) from e
    try:
        return win32com.client.Dispatch(prog_id)
    except Exception as e:
        raise ProviderError(f"Cannot create {prog_id}: {e}") from e


class WuaUpdateProvider(UpdateProvider):
    """UpdateProvider over the Microsoft.Update.Session COM API."""

    def __init__(
        self,
        session=None,
        collection_factory: Optional[Callable[[], Any]] = None,
        client_name: str = SCRIPT_NAME,
    ):
        self._session = session
        self.client_name = client_name
        self._new_collection = collection_factory or (
            lambda: _dispatch("Microsoft.Update.UpdateColl")
        )

    @property
    def session(self):
        """The WUA session, created on first use."""
        if self._session is None:
            session = _dispatch("Microsoft.Update.Session")
            session.ClientApplicationID = self.client_name
            self._session = session
        return self._session

    @staticmethod
    def _to_item(update) -> UpdateItem:
        behavior = update.InstallationBehavior
        return UpdateItem(
            title=update.Title,
            update_id=update.Identity.UpdateID,
            requires_user_input=bool(behavior.CanRequestUserInput),
            eula_accepted=bool(update.EulaAccepted),
            eula_text=update.EulaText or None,
            downloaded=bool(update.IsDownloaded),
            reboot_behavior=RebootBehavior(behavior.RebootBehavior),
            handle=update,
        )

    def _collection(self, items: Sequence[UpdateItem]):
        collection = self._new_collection()
        for item in items:
            collection.Add(item.handle)
        return collection

    def search(self, criteria: str) -> Tuple[UpdateItem, ...]:
        try:
            searcher = self.session.CreateUpdateSearcher()
            updates = searcher.Search(criteria).Updates
            items = tuple(self._to_item(updates.Item(i)) for i in range(updates.Count))
        except Exception as e:
            raise ProviderError(f"Update search failed: {e}") from e
        logger.debug(f"WUA search '{criteria}' returned {len(items)} update(s)")
        return items

    def accept_eula(self, item: UpdateItem) -> None:
        try:
            item.handle.AcceptEula()
        except Exception as e:
            raise ProviderError(f"Accepting license terms for {item.title} failed: {e}") from e
        item.eula_accepted = True

    def download(self, items: Sequence[UpdateItem]) -> None:
        try:
            downloader = self.session.CreateUpdateDownloader()
            downloader.Updates = self._collection(items)
            result = downloader.Download()
            logger.debug(f"WUA download finished with result code {result.ResultCode}")
            for item in items:
                item.downloaded = bool(item.handle.IsDownloaded)
        except Exception as e:
            raise ProviderError(f"Update download failed: {e}") from e

    def install(self, items: Sequence[UpdateItem]) -> InstallationResult:
        try:
            installer = self.session.CreateUpdateInstaller()
            installer.Updates = self._collection(items)
            result = installer.Install()
            return InstallationResult(
                result_code=OperationResultCode(result.ResultCode),
                reboot_required=bool(result.RebootRequired),
                item_results=[
                    OperationResultCode(result.GetUpdateResult(i).ResultCode)
                    for i in range(len(items))
                ],
            )
        except Exception as e:
            raise ProviderError(f"Update installation failed: {e}") from e


# ═══════════════════════════════════════════════════════════════════════════════
# UPDATE WORKFLOW
# ═══════════════════════════════════════════════════════════════════════════════


def ask_eula(item: UpdateItem) -> str:
    """Show the license terms of ``item`` and read the operator's answer."""
    console.print(
        Panel(
            Text(item.eula_text or "(no license text provided)"),
            title=f"[bold yellow]📜 License terms: {escape(item.title)}[/bold yellow]",
            border_style="yellow",
            box=box.ROUNDED,
        )
    )
    try:
        return console.input("Accept the license terms? (y/n): ")
    except EOFError:
        return "n"


def build_install_set(selection: Sequence[UpdateItem]) -> List[UpdateItem]:
    return [item for item in selection if item.downloaded]


def reboot_may_be_required(items: Sequence[UpdateItem]) -> bool:
    return any(item.may_require_reboot for item in items)


RESULT_LEVELS = {
    OperationResultCode.SUCCEEDED_WITH_ERRORS: logging.WARNING,
    OperationResultCode.FAILED: logging.ERROR,
    OperationResultCode.ABORTED: logging.ERROR,
}


class UpdateWorkflow:
    """Privilege check, search, select, download, install, report."""

    def __init__(
        self,
        provider: UpdateProvider,
        log: RunLog,
        is_elevated: Callable[[], bool] = is_elevated,
        prompt: Callable[[UpdateItem], str] = ask_eula,
        eula_policy: EulaPolicy = EulaPolicy.PROMPT,
        criteria: str = DEFAULT_CRITERIA,
        notifier: Optional[EmailNotifier] = None,
        notify_on_completion: bool = False,
        dry_run: bool = False,
    ):
        self.provider = provider
        self.log = log
        self.is_elevated = is_elevated
        self.prompt = prompt
        self.eula_policy = eula_policy
        self.criteria = criteria
        self.notifier = notifier
        self.notify_on_completion = notify_on_completion
        self.dry_run = dry_run

    def run(self) -> WorkflowReport:
        report = WorkflowReport()

        try:
            elevated = self.is_elevated()
        except PrivilegeCheckError as e:
            self.log.error(f"Cannot determine privilege level: {e}")
            return report.finish(WorkflowOutcome.NOT_ELEVATED)
        if not elevated:
            self.log.warning("Administrator privileges are required, aborting")
            return report.finish(WorkflowOutcome.NOT_ELEVATED)

        self.log.info(f"Searching for updates: {self.criteria}")
        try:
            report.search_result = tuple(self.provider.search(self.criteria))
        except Exception as e:
            return self._fail(report, "search", e)

        if not report.search_result:
            self.log.info("No applicable updates found")
            return report.finish(WorkflowOutcome.NO_UPDATES)
        self.log.info(f"Found {len(report.search_result)} applicable update(s)")

        try:
            report.selection = self.select_updates(report.search_result)
        except Exception as e:
            return self._fail(report, "license acceptance", e)

        if not report.selection:
            self.log.info("All updates skipped, nothing to download")
            return report.finish(WorkflowOutcome.ALL_SKIPPED)

        if self.dry_run:
            self.log.info(
                f"Dry run: {len(report.selection)} update(s) selected, "
                "skipping download and installation"
            )
            return report.finish(WorkflowOutcome.DRY_RUN)

        self.log.info(f"Downloading {len(report.selection)} update(s)")
        try:
            self.provider.download(report.selection)
        except Exception as e:
            return self._fail(report, "download", e)

        report.install_set = build_install_set(report.selection)
        report.reboot_may_be_required = reboot_may_be_required(report.install_set)
        if not report.install_set:
            self.log.warning("No updates were downloaded, skipping installation")
            return report.finish(WorkflowOutcome.NOTHING_DOWNLOADED)

        self.log.info(f"Installing {len(report.install_set)} update(s)")
        if report.reboot_may_be_required:
            self.log.info("A reboot may be required after installation")
        try:
            report.installation = self.provider.install(report.install_set)
        except Exception as e:
            return self._fail(report, "installation", e)

        self.report_results(report.install_set, report.installation)
        report.finish(WorkflowOutcome.COMPLETED)

        if self.notify_on_completion and self.notifier is not None:
            self.notifier.notify(
                f"Windows updates installed on {platform.node()}",
                self.summarize(report),
            )
        return report

    def select_updates(self, updates: Sequence[UpdateItem]) -> List[UpdateItem]:
        """Apply the selection policy, keeping search order."""
        selection = []
        for item in updates:
            if item.requires_user_input:
                self.log.info(f"Skipping '{item.title}': requires user input")
                continue
            if not item.eula_accepted and not self._resolve_eula(item):
                self.log.info(f"Skipping '{item.title}': license terms not accepted")
                continue
            selection.append(item)
        return selection

    def _resolve_eula(self, item: UpdateItem) -> bool:
        if self.eula_policy is EulaPolicy.DECLINE:
            return False
        if self.eula_policy is EulaPolicy.PROMPT:
            answer = self.prompt(item) or ""
            if answer.strip().lower() != "y":
                return False
        self.provider.accept_eula(item)
        item.eula_accepted = True
        self.log.info(f"Accepted license terms for '{item.title}'")
        return True

    def report_results(self, install_set: Sequence[UpdateItem], result: InstallationResult):
        self.log.info(
            f"Installation finished: {result.result_code.name}, "
            f"reboot required: {'yes' if result.reboot_required else 'no'}"
        )
        if len(result.item_results) != len(install_set):
            self.log.warning(
                f"Provider returned {len(result.item_results)} result(s) "
                f"for {len(install_set)} update(s)"
            )
        for item, code in zip(install_set, result.item_results):
            item.install_result_code = code
            self.log.log(f"{item.title}: {code.name}", RESULT_LEVELS.get(code, logging.INFO))

    def _fail(self, report: WorkflowReport, stage: str, error: Exception) -> WorkflowReport:
        report.error = f"{type(error).__name__}: {error}"
        self.log.error(f"Update {stage} failed: {report.error}")
        if self.notifier is not None:
            self.notifier.notify(
                f"Windows update failed on {platform.node()}",
                f"The update {stage} stage failed.\n\n{report.error}\n",
            )
        return report.finish(WorkflowOutcome.PROVIDER_ERROR)

    @staticmethod
    def summarize(report: WorkflowReport) -> str:
        lines = [f"Outcome: {report.outcome.value if report.outcome else 'unknown'}"]
        for item in report.install_set:
            code = item.install_result_code.name if item.install_result_code is not None else "UNKNOWN"
            lines.append(f"  {item.title}: {code}")
        if report.installation is not None:
            lines.append(
                f"Reboot required: {'yes' if report.installation.reboot_required else 'no'}"
            )
        return "\n".join(lines) + "\n"


# ═══════════════════════════════════════════════════════════════════════════════
# CONSOLE VIEW
# ═══════════════════════════════════════════════════════════════════════════════


RESULT_STYLES = {
    OperationResultCode.SUCCEEDED: ("✅", "green"),
    OperationResultCode.SUCCEEDED_WITH_ERRORS: ("⚠️", "yellow"),
    OperationResultCode.FAILED: ("❌", "red"),
    OperationResultCode.ABORTED: ("❌", "red"),
}


class ReportView:
    """Rich rendering of a run."""

    @staticmethod
    def display_banner(criteria: str, log_path: Path):
        banner_text = Text()
        banner_text.append(
            "╔════════════════════════════════════════════════════════════╗\n",
            style="bold blue",
        )
        banner_text.append(
            "║                    WINDOWS UPDATE RUNNER                   ║\n",
            style="bold white on blue",
        )
        banner_text.append(
            "╚════════════════════════════════════════════════════════════╝\n",
            style="bold blue",
        )
        console.print(Align.center(banner_text))

        info_table = Table.grid(padding=1)
        info_table.add_column(justify="right", style="cyan")
        info_table.add_column(style="white")
        info_table.add_row("🖥️  Host:", f"{platform.node()} ({platform.system()} {platform.release()})")
        info_table.add_row("🔍 Criteria:", escape(criteria))
        info_table.add_row("📝 Log:", escape(str(log_path)))

        console.print(
            Panel(
                info_table,
                title="[bold green]Run Information[/bold green]",
                border_style="green",
                box=box.ROUNDED,
                padding=(1, 2),
            )
        )

    @staticmethod
    def create_results_table(install_set: Sequence[UpdateItem]) -> Table:
        table = Table(
            title="[bold cyan]Installation Results[/bold cyan]",
            box=box.ROUNDED,
            show_header=True,
            header_style="bold blue",
        )
        table.add_column("📦 Update", style="cyan")
        table.add_column("🔁 Reboot", justify="center")
        table.add_column("📊 Result", justify="center")

        for item in install_set:
            code = item.install_result_code
            if code is None:
                result = "[dim]N/A[/dim]"
            else:
                icon, style = RESULT_STYLES.get(code, ("•", "white"))
                result = f"[{style}]{icon} {code.name}[/{style}]"
            table.add_row(
                escape(item.title),
                "maybe" if item.may_require_reboot else "no",
                result,
            )
        return table


# ═══════════════════════════════════════════════════════════════════════════════
# EXPORT
# ═══════════════════════════════════════════════════════════════════════════════


def export_results(
    report: WorkflowReport, format_type: str, output_file: Optional[str] = None
) -> Optional[str]:
    """Write the run report as JSON or CSV, returning the path written."""
    if not output_file:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        output_file = f"{SCRIPT_NAME}_report_{timestamp}.{format_type}"

    data = report.to_dict()
    try:
        if format_type == "json":
            with open(output_file, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)

        elif format_type == "csv":
            with open(output_file, "w", newline="", encoding="utf-8") as f:
                writer = csv.writer(f)
                writer.writerow(["Title", "UpdateId", "Selected", "Downloaded", "Result"])
                for update in data["updates"]:
                    writer.writerow(
                        [
                            update["title"],
                            update["update_id"] or "",
                            update["selected"],
                            update["downloaded"],
                            update["install_result"] or "",
                        ]
                    )
        else:
            raise ValueError(f"Unsupported export format: {format_type}")

        console.print(f"[green]✅ Exported to {escape(output_file)}[/green]")
        return output_file

    except OSError as e:
        console.print(f"[red]❌ Export failed: {escape(str(e))}[/red]")
        return None


# ═══════════════════════════════════════════════════════════════════════════════
# COMMAND LINE
# ═══════════════════════════════════════════════════════════════════════════════


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Windows Update Runner - search, download and install updates",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exit codes:
  0  completed (or dry run)
  1  not running elevated
  2  nothing to do
  3  update provider failed

Examples:
  python windows_update.py                   # Prompt for license terms
  python windows_update.py --accept-eula     # Unattended run
  python windows_update.py --dry-run         # Search and select only
  python windows_update.py --export json     # Export the run report
        """,
    )

    eula = parser.add_mutually_exclusive_group()
    eula.add_argument(
        "--accept-eula", action="store_true", help="Accept license terms without prompting"
    )
    eula.add_argument(
        "--decline-eula", action="store_true", help="Skip updates with unaccepted license terms"
    )

    parser.add_argument("--criteria", help="WUA search criteria")
    parser.add_argument(
        "--dry-run", action="store_true", help="Search and select without downloading"
    )
    parser.add_argument("--log-dir", help="Directory for the run log")
    parser.add_argument(
        "--notify", action="store_true", help="Enable email notification"
    )
    parser.add_argument("--config", help="Configuration file")

    parser.add_argument(
        "--export", choices=["json", "csv"], help="Export run report format"
    )
    parser.add_argument("--output", help="Output file for export")
    return parser


def apply_overrides(config: UpdateConfig, args: argparse.Namespace):
    """Fold command-line flags into the loaded settings."""
    if args.criteria:
        config.settings["search"]["criteria"] = args.criteria
    if args.accept_eula:
        config.settings["eula"]["policy"] = EulaPolicy.ACCEPT.value
    elif args.decline_eula:
        config.settings["eula"]["policy"] = EulaPolicy.DECLINE.value
    if args.log_dir:
        config.settings["logging"]["log_dir"] = args.log_dir
    if args.notify:
        config.settings["notify"]["enabled"] = True


def main(argv: Optional[List[str]] = None) -> int:
    """Application entry point."""
    args = build_parser().parse_args(argv)

    config = UpdateConfig(args.config)
    apply_overrides(config, args)

    config.config_dir.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=[logging.FileHandler(config.diagnostics_file, encoding="utf-8")],
    )

    run_log = RunLog(config.run_log_path(datetime.now()), echo=console)
    criteria = config.settings["search"]["criteria"]
    ReportView.display_banner(criteria, run_log.path)

    workflow = UpdateWorkflow(
        WuaUpdateProvider(),
        run_log,
        is_elevated=is_elevated,
        eula_policy=config.eula_policy,
        criteria=criteria,
        notifier=EmailNotifier(config.settings["notify"], run_log),
        notify_on_completion=bool(config.settings["notify"].get("on_completion")),
        dry_run=args.dry_run,
    )

    try:
        report = workflow.run()
    except KeyboardInterrupt:
        run_log.warning("Cancelled by user")
        run_log.close()
        return EXIT_INTERRUPTED

    if report.install_set:
        console.print()
        console.print(ReportView.create_results_table(report.install_set))

    if args.export:
        export_results(report, args.export, args.output)

    run_log.close()
    return report.outcome.exit_code


if __name__ == "__main__":
    sys.exit(main())
