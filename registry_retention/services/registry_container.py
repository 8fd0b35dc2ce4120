import logging

import python_on_whales

log = logging.getLogger(__name__)


class RegistryContainer:
    """A disposable distribution registry running in a local container, with tag deletion enabled.

    Used as a context manager, the container and its data are removed on exit.
    """

    _CONTAINER_PORT = 5000

    def __init__(self, image: str = "docker.io/registry:3", port: int | None = None):
        log.debug(f"Starting registry container at port {port}...")
        self._container = python_on_whales.docker.run(
            image=image,
            publish=[(port, self._CONTAINER_PORT)] if port is not None else [(self._CONTAINER_PORT,)],
            envs={"REGISTRY_STORAGE_DELETE_ENABLED": "true"},
            detach=True,
        )
        log.debug("Started registry container.")

    @property
    def host(self) -> str:
        """Get the host:port the registry is published at."""
        if not self._container.exists():
            raise RuntimeError("Registry container does not exist.")

        port_map = self._container.network_settings.ports.get(f"{self._CONTAINER_PORT}/tcp")
        if not port_map:
            raise RuntimeError("Registry container port is not mapped.")
        mapped_port = port_map[0]["HostPort"]

        return f"localhost:{mapped_port}"

    @property
    def url(self) -> str:
        """Get the base URL of the registry API."""
        return f"http://{self.host}"

    @property
    def status(self) -> str:
        """Get the status of the registry container."""
        if not self._container.exists():
            return "not_found"
        return self._container.state.status

    def push(self, source_image: str, repository: str, tag: str) -> str:
        """Tag a local image into the registry and push it.

        :param source_image: Local image to push.
        :param repository: Repository name in the registry.
        :param tag: Tag name in the registry.
        :return: The pushed image reference.
        """
        target = f"{self.host}/{repository}:{tag}"
        python_on_whales.docker.image.tag(source_image, target)
        python_on_whales.docker.image.push(target, quiet=True)
        python_on_whales.docker.image.remove(target)
        log.debug(f"Pushed {source_image} as {target}")
        return target

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        if not self._container.exists():
            log.debug("Registry container does not exist; nothing to clean up.")
            return
        log.debug(f"Removing registry container {self._container.name} and data...")
        self._container.remove(force=True, volumes=True)
        log.debug("Removed registry container.")
