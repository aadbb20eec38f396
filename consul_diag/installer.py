#!/usr/bin/env python3
"""
consul-k8s CLI bootstrap.

Detection and installation are separate steps: detect_platform() maps the
host to a platform id, and INSTALLERS maps that id to the package manager
recipe for it.
"""

import logging
import platform
import shutil
import subprocess
from pathlib import Path

from .common.errors import DependencyInstallError, UnsupportedPlatformError

logger = logging.getLogger(__name__)

CONSUL_K8S_BINARY = "consul-k8s"
OS_RELEASE_PATH = "/etc/os-release"

HASHICORP_APT_GPG = "https://apt.releases.hashicorp.com/gpg"
HASHICORP_APT_REPO = "https://apt.releases.hashicorp.com"
HASHICORP_RPM_REPO = "https://rpm.releases.hashicorp.com/RHEL/hashicorp.repo"

# Substring checks against the lowercased /etc/os-release, first match wins
DISTRO_MARKERS = (
    (("ubuntu", "debian"), "debian"),
    (("centos", "rhel", "red hat"), "rhel"),
)


def detect_platform(system=None, os_release=None):
    """
    Identify the installer strategy for this host.

    Args:
        system: Platform identifier as from platform.system() (default: this host)
        os_release: Contents of /etc/os-release (default: read from disk)

    Returns:
        str: One of 'darwin', 'debian', 'rhel'

    Raises:
        UnsupportedPlatformError
    """
    system = system or platform.system()
    if system == "Darwin":
        return "darwin"
    if system != "Linux":
        raise UnsupportedPlatformError(f"Unsupported OS '{system}'. Please install consul-k8s manually.")

    if os_release is None:
        try:
            os_release = Path(OS_RELEASE_PATH).read_text()
        except OSError:
            raise UnsupportedPlatformError(
                f"Unknown Linux distro, {OS_RELEASE_PATH} not found or unreadable. "
                "Please manually install consul-k8s."
            )

    os_info = os_release.lower()
    for markers, platform_id in DISTRO_MARKERS:
        if any(marker in os_info for marker in markers):
            return platform_id

    raise UnsupportedPlatformError(
        f"Unrecognized Linux distro in {OS_RELEASE_PATH}:\n{os_release.strip()}\n"
        "Please install consul-k8s manually."
    )


def run_command(cmd, capture_output=False, shell=False):
    """Run one installer step, inheriting the terminal unless capturing stdout."""
    logger.debug(f"Running: {cmd if shell else ' '.join(cmd)}")
    result = subprocess.run(
        cmd,
        shell=shell,
        check=True,
        text=True,
        stdout=subprocess.PIPE if capture_output else None
    )
    return result.stdout.strip() if capture_output else result.returncode


def _step(description, cmd, **kwargs):
    try:
        return run_command(cmd, **kwargs)
    except (subprocess.CalledProcessError, OSError) as e:
        raise DependencyInstallError(f"Failed to {description}: {e}") from e


def install_with_brew():
    if not shutil.which("brew"):
        raise DependencyInstallError("Homebrew not found! Please install Homebrew or manually install consul-k8s.")
    logger.info("Detected macOS. Installing consul-k8s via Homebrew...")
    _step("tap hashicorp/tap Homebrew repo", ["brew", "tap", "hashicorp/tap"])
    _step("install consul-k8s via Homebrew", ["brew", "install", "hashicorp/tap/consul-k8s"])


def install_with_apt():
    logger.info("Detected Ubuntu/Debian Linux. Installing consul-k8s via apt...")
    _step("add the HashiCorp apt key", f"curl -fsSL {HASHICORP_APT_GPG} | sudo apt-key add -", shell=True)
    codename = _step("detect the distribution codename", ["lsb_release", "-cs"], capture_output=True)
    _step(
        "add the HashiCorp apt repository",
        ["sudo", "apt-add-repository", f"deb [arch=amd64] {HASHICORP_APT_REPO} {codename} main"]
    )
    _step("update apt package lists", ["sudo", "apt-get", "update"])
    _step("install consul-k8s via apt", ["sudo", "apt-get", "install", "-y", "consul-k8s"])


def install_with_yum():
    logger.info("Detected CentOS/RHEL. Installing consul-k8s via yum...")
    _step("install yum-utils", ["sudo", "yum", "install", "-y", "yum-utils"])
    _step("add HashiCorp repo", ["sudo", "yum-config-manager", "--add-repo", HASHICORP_RPM_REPO])
    _step("install consul-k8s via yum", ["sudo", "yum", "-y", "install", "consul-k8s"])


INSTALLERS = {
    "darwin": install_with_brew,
    "debian": install_with_apt,
    "rhel": install_with_yum,
}


def ensure_consul_k8s(binary=CONSUL_K8S_BINARY):
    """
    Make sure the consul-k8s CLI is on PATH, installing it if needed.

    Returns:
        bool: True if an installation was performed, False if already present

    Raises:
        DependencyInstallError: Detection, installation or verification failed
    """
    if shutil.which(binary):
        logger.debug(f"{binary} found at {shutil.which(binary)}")
        return False

    logger.info(f"{binary} not found on PATH. Attempting installation...")
    platform_id = detect_platform()
    INSTALLERS[platform_id]()

    if not shutil.which(binary):
        raise DependencyInstallError(
            f"{binary} installation attempted but not found on PATH. Please install manually."
        )
    logger.info(f"{binary} successfully installed.")
    return True
