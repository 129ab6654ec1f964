"""
Named Docker volumes for Zeebe containers.

Volumes are labelled with the session labels of the runtime that created
them. They are not owned by the containers they are attached to: a volume can
be inspected, reattached or removed independently.
"""

import logging
from typing import Dict, Optional
from uuid import uuid4

from docker.errors import DockerException
from requests.exceptions import RequestException

from zeebe_containers.container_spec import ContainerSpec, VolumeBind
from zeebe_containers.errors import ProvisioningError
from zeebe_containers.metrics import record_volume_operation
from zeebe_containers.runtime import DockerRuntime, get_default_runtime

logger = logging.getLogger(__name__)


class ZeebeVolume:
    """A named, labelled volume that can be bound into containers."""

    def __init__(self, name: str, labels: Dict[str, str], runtime: DockerRuntime):
        self._name = name
        self._labels = dict(labels)
        self.runtime = runtime

    @property
    def name(self) -> str:
        return self._name

    @property
    def labels(self) -> Dict[str, str]:
        return dict(self._labels)

    @classmethod
    def new_volume(
        cls,
        name: Optional[str] = None,
        labels: Optional[Dict[str, str]] = None,
        runtime: Optional[DockerRuntime] = None,
    ) -> "ZeebeVolume":
        """
        Create a new backing volume.

        Args:
            name: Volume name; a unique ``zeebe-volume-*`` name is generated if omitted
            labels: Extra labels, merged with the session labels
            runtime: Runtime to create the volume with

        Raises:
            ProvisioningError: if the name is taken by another session or the
                daemon rejects the request
        """
        runtime = runtime or get_default_runtime()
        name = name or f"zeebe-volume-{uuid4().hex}"
        try:
            volume_labels, reused = runtime.create_volume(name, labels)
        except ProvisioningError:
            record_volume_operation("create", success=False)
            raise
        except (DockerException, RequestException) as e:
            record_volume_operation("create", success=False)
            raise ProvisioningError(
                f"Failed to create volume '{name}': {e}",
                component="volume",
                context={"volume": name},
            ) from e
        record_volume_operation("reuse" if reused else "create")
        return cls(name, volume_labels, runtime)

    def attach(self, spec: ContainerSpec, mount_path: Optional[str] = None) -> ContainerSpec:
        """
        Bind this volume read-write into the given container spec.

        Args:
            spec: Container spec to extend; existing binds are kept as is
            mount_path: Path inside the container, defaults to the Zeebe data path

        Returns:
            The same spec, for chaining
        """
        path = mount_path or self.runtime.defaults.data_path
        return spec.add_bind(VolumeBind(volume=self._name, path=path, mode="rw"))

    def remove(self) -> None:
        """Remove the backing volume. Removing a missing volume is a no-op."""
        try:
            removed = self.runtime.remove_volume(self._name)
        except (DockerException, RequestException) as e:
            record_volume_operation("remove", success=False)
            logger.warning(f"Failed to remove volume {self._name}: {e}")
            return
        if removed:
            record_volume_operation("remove")

    def __enter__(self) -> "ZeebeVolume":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.remove()
        return False

    def __repr__(self) -> str:
        return f"ZeebeVolume(name={self._name!r})"
