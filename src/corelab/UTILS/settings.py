# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Process-wide settings derived from the environment and the host OS release.
"""
import os
from typing import Dict, Mapping, Optional

from dotenv import dotenv_values, load_dotenv
from pydantic import BaseModel

OS_RELEASE_PATH = "/etc/os-release"
DEFAULT_REGISTRY = "docker.io/oaisoftwarealliance"
RHEL_REGISTRY = "quay.io/oaisoftwarealliance"
RHEL_FAMILY = {"rhel", "centos", "fedora", "rocky", "almalinux"}


def read_os_release(path: str = OS_RELEASE_PATH) -> Dict[str, str]:
    """
    Reads the KEY=VALUE pairs of an os-release file.
    A missing file yields an empty mapping.
    """
    if not os.path.exists(path):
        return {}
    return {k: v for k, v in dotenv_values(path).items() if v is not None}


def platform_from_os_release(os_release: Mapping[str, str]) -> str:
    """ubuntu + 18.04 -> ubuntu18.04"""
    distro = os_release.get("ID", "").strip().lower()
    version = os_release.get("VERSION_ID", "").strip()
    if not distro:
        return "latest"
    return f"{distro}{version}"


def registry_from_os_release(os_release: Mapping[str, str]) -> str:
    family = {os_release.get("ID", "").lower()}
    family.update(os_release.get("ID_LIKE", "").lower().split())
    if family & RHEL_FAMILY:
        return RHEL_REGISTRY
    return DEFAULT_REGISTRY


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


class Settings(BaseModel):
    """
    Launcher settings. Build with Settings.from_env().
    """
    platform: str = "latest"
    registry: str = DEFAULT_REGISTRY
    state_timeout: float = 30.0
    socket_timeout: float = 120.0
    poll_interval: float = 1.0

    @classmethod
    def from_env(cls,
                 env: Optional[Mapping[str, str]] = None,
                 os_release_path: str = OS_RELEASE_PATH,
                 dotenv_path: Optional[str] = ".env") -> "Settings":
        """
        Builds settings from environment variables, falling back to values
        derived from the host's os-release file.

        :param env: Environment to read; defaults to os.environ after loading .env.
        :param os_release_path: Location of the os-release file.
        :param dotenv_path: .env file merged into os.environ (existing variables win).
        """
        if env is None:
            if dotenv_path and os.path.exists(dotenv_path):
                load_dotenv(dotenv_path, override=False)
            env = os.environ

        os_release = read_os_release(os_release_path)
        return cls(
            platform=env.get("CORELAB_PLATFORM") or platform_from_os_release(os_release),
            registry=env.get("CORELAB_REGISTRY") or registry_from_os_release(os_release),
            state_timeout=_env_float(env, "CORELAB_STATE_TIMEOUT", 30.0),
            socket_timeout=_env_float(env, "CORELAB_SOCKET_TIMEOUT", 120.0),
            poll_interval=_env_float(env, "CORELAB_POLL_INTERVAL", 1.0),
        )
