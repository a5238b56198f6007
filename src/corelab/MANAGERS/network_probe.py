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
Discovery of the host's default outbound interface and address.
"""
import os
import socket
from typing import List, Optional, Tuple

import psutil

from ..exceptions import NetworkProbeError
from ..MODELS.component import HostNetwork

ROUTE_TABLE_PATH = "/proc/net/route"
RTF_UP = 0x0001


class HostNetworkProbe:
    """
    Reads the kernel route table to find the interface carrying the default
    route, then looks up that interface's IPv4 address.
    """

    def __init__(self, route_table_path: str = ROUTE_TABLE_PATH):
        self.route_table_path = route_table_path

    def discover(self) -> HostNetwork:
        """
        :return: Interface name and IPv4 address used for outbound traffic.
        :raises NetworkProbeError: If there is no default route or it has no IPv4 address.
        """
        interface = self.default_interface()
        if interface is None:
            raise NetworkProbeError(f"No default route found in {self.route_table_path}")
        ip = self.interface_ipv4(interface)
        if ip is None:
            raise NetworkProbeError(f"Default route interface {interface} has no IPv4 address")
        return HostNetwork(interface=interface, ip=ip)

    def default_interface(self) -> Optional[str]:
        """
        Name of the interface carrying the default route, lowest metric first.
        """
        if not os.path.exists(self.route_table_path):
            raise NetworkProbeError(f"Route table {self.route_table_path} is not readable")
        with open(self.route_table_path, 'r') as f:
            lines = f.read().splitlines()

        candidates: List[Tuple[int, str]] = []
        for line in lines[1:]:
            fields = line.split()
            if len(fields) < 8:
                continue
            iface, destination, flags, metric, mask = fields[0], fields[1], fields[3], fields[6], fields[7]
            try:
                if int(destination, 16) != 0 or int(mask, 16) != 0:
                    continue
                if not int(flags, 16) & RTF_UP:
                    continue
                candidates.append((int(metric), iface))
            except ValueError:
                continue

        if not candidates:
            return None
        return min(candidates)[1]

    @staticmethod
    def interface_ipv4(interface: str) -> Optional[str]:
        for addr in psutil.net_if_addrs().get(interface, []):
            if addr.family == socket.AF_INET:
                return addr.address
        return None
