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
Unit tests for the Docker-backed container runtime, against an in-memory client.
"""
import pytest
from docker.errors import APIError, ContainerError, ImageNotFound, NotFound

from corelab.exceptions import ContainerStartError, ProvisioningError
from corelab.MODELS.component import ComponentSpec, RuntimeState
from corelab.RUNTIME.docker_runtime import DockerRuntime


class FakeContainer:
    def __init__(self, name, status="running", attrs=None, labels=None, remove_error=None):
        self.id = f"id-{name}"
        self.name = name
        self.status = status
        self.attrs = attrs if attrs is not None else {}
        self.labels = labels or {}
        self.removed_with = None
        self.remove_error = remove_error

    def remove(self, force=False):
        if self.remove_error:
            raise self.remove_error
        self.removed_with = {"force": force}


class FakeContainers:
    def __init__(self):
        self.by_name = {}
        self.run_calls = []
        self.run_result = None
        self.run_error = None

    def get(self, name):
        if name not in self.by_name:
            raise NotFound(f"No such container: {name}")
        return self.by_name[name]

    def run(self, image, **kwargs):
        self.run_calls.append((image, kwargs))
        if self.run_error:
            raise self.run_error
        if self.run_result is not None:
            return self.run_result
        return FakeContainer(kwargs.get("name", "anonymous"))


class FakeClient:
    def __init__(self):
        self.containers = FakeContainers()


@pytest.fixture
def client():
    return FakeClient()


@pytest.fixture
def docker_runtime(client):
    return DockerRuntime(client=client)


class TestInspection:
    """Tests for state, address and label inspection."""

    def test_missing_container_is_absent(self, docker_runtime):
        assert docker_runtime.inspect_state("prod-cassandra") is RuntimeState.ABSENT
        assert docker_runtime.inspect_ip("prod-cassandra") == ""
        assert docker_runtime.inspect_labels("prod-cassandra") == {}

    @pytest.mark.parametrize("status,expected", [
        ("running", RuntimeState.RUNNING),
        ("Running", RuntimeState.RUNNING),
        ("created", RuntimeState.STOPPED),
        ("exited", RuntimeState.STOPPED),
        ("paused", RuntimeState.STOPPED),
        ("restarting", RuntimeState.STOPPED),
    ])
    def test_status_mapping(self, docker_runtime, client, status, expected):
        client.containers.by_name["prod-oai-hss"] = FakeContainer("prod-oai-hss", status=status)
        assert docker_runtime.inspect_state("prod-oai-hss") is expected

    def test_ip_from_default_bridge(self, docker_runtime, client):
        client.containers.by_name["prod-oai-hss"] = FakeContainer(
            "prod-oai-hss", attrs={"NetworkSettings": {"IPAddress": "172.17.0.3"}})
        assert docker_runtime.inspect_ip("prod-oai-hss") == "172.17.0.3"

    def test_ip_falls_back_to_attached_networks(self, docker_runtime, client):
        attrs = {"NetworkSettings": {
            "IPAddress": "",
            "Networks": {"none": {"IPAddress": ""}, "lab": {"IPAddress": "10.10.0.4"}},
        }}
        client.containers.by_name["prod-oai-mme"] = FakeContainer("prod-oai-mme", attrs=attrs)
        assert docker_runtime.inspect_ip("prod-oai-mme") == "10.10.0.4"

    def test_host_networked_container_has_no_address(self, docker_runtime, client):
        attrs = {"NetworkSettings": {"IPAddress": "", "Networks": {"host": {"IPAddress": ""}}}}
        client.containers.by_name["prod-oai-enb"] = FakeContainer("prod-oai-enb", attrs=attrs)
        assert docker_runtime.inspect_ip("prod-oai-enb") == ""

    def test_labels(self, docker_runtime, client):
        client.containers.by_name["prod-oai-hss"] = FakeContainer(
            "prod-oai-hss", labels={"corelab.component": "HSS"})
        assert docker_runtime.inspect_labels("prod-oai-hss") == {"corelab.component": "HSS"}


class TestRemove:
    """Tests for force removal."""

    def test_existing_container_is_force_removed(self, docker_runtime, client):
        container = FakeContainer("prod-oai-hss", status="exited")
        client.containers.by_name["prod-oai-hss"] = container
        docker_runtime.remove("prod-oai-hss")
        assert container.removed_with == {"force": True}

    def test_missing_container_is_tolerated(self, docker_runtime):
        docker_runtime.remove("prod-oai-hss")

    def test_container_vanishing_during_removal_is_tolerated(self, docker_runtime, client):
        client.containers.by_name["prod-oai-hss"] = FakeContainer(
            "prod-oai-hss", remove_error=NotFound("No such container: prod-oai-hss"))
        docker_runtime.remove("prod-oai-hss")


class TestRun:
    """Tests for detached container creation."""

    def test_minimal_spec(self, docker_runtime, client):
        spec = ComponentSpec(name="prod-cassandra", image="cassandra:2.1",
                             environment={"MAX_HEAP_SIZE": "512M"}, labels={"corelab.component": "DB"})
        assert docker_runtime.run(spec) == "id-prod-cassandra"

        image, kwargs = client.containers.run_calls[0]
        assert image == "cassandra:2.1"
        assert kwargs == {
            "name": "prod-cassandra",
            "detach": True,
            "environment": {"MAX_HEAP_SIZE": "512M"},
            "labels": {"corelab.component": "DB"},
            "privileged": False,
            "restart_policy": {"Name": "no"},
        }

    def test_radio_unit_flags(self, docker_runtime, client):
        spec = ComponentSpec(
            name="prod-oai-enb",
            image="docker.io/oaisoftwarealliance/oai-enb:ubuntu18.04",
            privileged=True,
            network_mode="host",
            cap_add=["SYS_NICE"],
            devices=["/dev/bus/usb:/dev/bus/usb:rwm"],
            cpu_rt_runtime=950000,
        )
        docker_runtime.run(spec)

        _, kwargs = client.containers.run_calls[0]
        assert kwargs["privileged"] is True
        assert kwargs["network_mode"] == "host"
        assert kwargs["cap_add"] == ["SYS_NICE"]
        assert kwargs["devices"] == ["/dev/bus/usb:/dev/bus/usb:rwm"]
        assert kwargs["cpu_rt_runtime"] == 950000
        assert "ports" not in kwargs

    def test_ports_are_published(self, docker_runtime, client):
        spec = ComponentSpec(name="prod-oai-mme", image="oai-mme:test",
                             ports={"36412/sctp": 36412, "3870/tcp": None})
        docker_runtime.run(spec)
        _, kwargs = client.containers.run_calls[0]
        assert kwargs["ports"] == {"36412/sctp": 36412, "3870/tcp": None}

    def test_missing_image_is_a_start_error(self, docker_runtime, client):
        client.containers.run_error = ImageNotFound("pull access denied for oai-hss")
        with pytest.raises(ContainerStartError, match="Image oai-hss:test not found for prod-oai-hss"):
            docker_runtime.run(ComponentSpec(name="prod-oai-hss", image="oai-hss:test"))

    def test_daemon_refusal_is_a_start_error(self, docker_runtime, client):
        client.containers.run_error = APIError("Conflict", explanation="port is already allocated")
        with pytest.raises(ContainerStartError, match="port is already allocated"):
            docker_runtime.run(ComponentSpec(name="prod-oai-mme", image="oai-mme:test"))


class TestExecOneShot:
    """Tests for throw-away client containers."""

    def test_output_is_decoded(self, docker_runtime, client):
        client.containers.run_result = b"(1 rows)\n"
        output = docker_runtime.exec_one_shot("cassandra:2.1", ["cqlsh", "172.17.0.2", "-e", "SELECT 1;"])

        assert output == "(1 rows)\n"
        image, kwargs = client.containers.run_calls[0]
        assert image == "cassandra:2.1"
        assert kwargs == {
            "command": ["cqlsh", "172.17.0.2", "-e", "SELECT 1;"],
            "remove": True,
            "stdout": True,
            "stderr": True,
        }

    def test_nonzero_exit_is_a_provisioning_error(self, docker_runtime, client):
        client.containers.run_error = ContainerError(
            "c0ffee", 2, "cqlsh 172.17.0.2 -e ...", "cassandra:2.1",
            b"SyntaxException: line 1:0 no viable alternative")
        with pytest.raises(ProvisioningError) as excinfo:
            docker_runtime.exec_one_shot("cassandra:2.1", ["cqlsh", "172.17.0.2", "-e", "BAD"])
        message = str(excinfo.value)
        assert "'cqlsh' exited with 2" in message
        assert "SyntaxException: line 1:0 no viable alternative" in message
        assert "b'" not in message

    def test_missing_client_image_is_a_provisioning_error(self, docker_runtime, client):
        client.containers.run_error = ImageNotFound("no such image")
        with pytest.raises(ProvisioningError, match="Cannot run one-shot container from cqlsh:latest"):
            docker_runtime.exec_one_shot("cqlsh:latest", ["cqlsh", "172.17.0.2", "-e", "SELECT 1;"])
