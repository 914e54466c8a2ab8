from collections import Counter
from typing import Optional

import docker
import requests

from runner.languages import LanguageRegistry
from runner.sandbox import CONTAINER_LABEL, Sandbox

from .constant import SubmissionStatus
from .evaluator import Evaluator
from .meta import ExecutionConstraints, TestCase
from .utils import logger

_DOCKER_ERRORS = (
    docker.errors.DockerException,
    requests.exceptions.RequestException,
)

HELLO_WORLD_PROGRAMS = {
    "cpp": ('#include <iostream>\nusing namespace std;\n'
            'int main() { cout << "Hello World"; return 0; }'),
    "java": ('public class Solution { public static void main(String[] args)'
             ' { System.out.print("Hello World"); } }'),
    "python": 'print("Hello World", end="")',
    "javascript": 'process.stdout.write("Hello World");',
}
HEALTH_CHECK_CONSTRAINTS = ExecutionConstraints(timeLimit=5000,
                                                memoryLimit=128)


class JudgeLifecycle:
    """
    Image provisioning, health checks and maintenance of the judge host.
    """

    def __init__(
        self,
        registry: LanguageRegistry,
        sandbox: Sandbox,
        evaluator: Optional[Evaluator] = None,
    ):
        self.registry = registry
        self.sandbox = sandbox
        self.evaluator = evaluator or Evaluator(registry, sandbox)

    @property
    def client(self):
        return self.sandbox.client

    def ensure_image(self, image: str) -> bool:
        try:
            self.client.inspect_image(image)
            return True
        except docker.errors.ImageNotFound:
            pass
        except _DOCKER_ERRORS as exc:
            logger().error(f"Error checking image {image}: {exc}")
            return False
        logger().info(f"Pulling image {image}")
        try:
            self.client.pull(image)
        except _DOCKER_ERRORS as exc:
            logger().error(f"Pull image {image} failed: {exc}")
            return False
        return True

    def initialize(self) -> bool:
        logger().info("Initializing judge images")
        # no short-circuit, try every image
        results = [self.ensure_image(image) for image in self.registry.images()]
        ready = all(results)
        if ready:
            logger().info("All judge images ready")
        else:
            logger().error("Failed to prepare some judge images")
        return ready

    def health_check(self) -> dict:
        test_cases = [TestCase(id="test", input="", output="Hello World")]
        results = {}
        for language in self.registry.languages():
            code = HELLO_WORLD_PROGRAMS.get(language)
            if code is None:
                continue
            try:
                result = self.evaluator.evaluate(
                    code=code,
                    language=language,
                    test_cases=test_cases,
                    constraints=HEALTH_CHECK_CONSTRAINTS,
                )
                results[language] = {
                    "status": result.status.value,
                    "working": result.status == SubmissionStatus.ACCEPTED,
                }
            except Exception as exc:
                logger().warning(f"health check failed [{language}]: {exc}")
                results[language] = {
                    "status": "error",
                    "working": False,
                    "error": str(exc),
                }
        return results

    def cleanup(self) -> bool:
        """
        Remove exited judge containers and dangling images. Running
        containers are never touched.
        """
        logger().info("Starting judge cleanup")
        try:
            containers = self.client.containers(
                all=True,
                filters={
                    "status": "exited",
                    "label": f"{CONTAINER_LABEL}=true",
                },
            )
            images = self.client.images(filters={"dangling": True})
        except _DOCKER_ERRORS as exc:
            logger().error(f"Cleanup error: {exc}")
            return False
        for container in containers:
            container_id = container.get("Id")
            try:
                self.client.remove_container(container_id, v=True)
                logger().info(f"Removed stopped container: {container_id}")
            except _DOCKER_ERRORS as exc:
                logger().warning(
                    f"Error removing container {container_id}: {exc}")
        for image in images:
            image_id = image.get("Id")
            try:
                self.client.remove_image(image_id)
                logger().info(f"Removed dangling image: {image_id}")
            except _DOCKER_ERRORS as exc:
                logger().warning(f"Error removing image {image_id}: {exc}")
        logger().info("Judge cleanup completed")
        return True

    def stats(self) -> dict:
        try:
            containers = self.client.containers(all=True)
            images = self.client.images()
            info = self.client.info()
        except _DOCKER_ERRORS as exc:
            logger().error(f"Error getting judge stats: {exc}")
            return {
                "error": "Failed to get judge statistics",
                "details": str(exc),
            }
        return {
            "containers": {
                "total": len(containers),
                "byState": dict(Counter(c.get("State") for c in containers)),
            },
            "images": {
                "total": len(images),
            },
            "system": {
                "version": info.get("ServerVersion"),
                "containers": info.get("Containers"),
                "images": info.get("Images"),
                "memoryLimit": info.get("MemTotal"),
                "cpus": info.get("NCPU"),
            },
            "supportedLanguages": self.registry.languages(),
            "activeSandboxes": self.sandbox.active_count,
        }
