from typing import Any, Generic, Protocol, TypeVar

# Base registry implementation
T = TypeVar("T")


class Registry(Generic[T]):
    """Generic registry for pluggable implementations."""

    def __init__(self, name: str):
        self.name = name
        self._implementations: dict[str, T] = {}
        self._frozen = False

    def register(self, name: str, implementation: T) -> None:
        """Register an implementation with a given name."""
        if self._frozen:
            raise RuntimeError(
                f"Cannot register '{name}' in {self.name.lower()} registry: "
                "registry is frozen in production mode"
            )
        self._implementations[name] = implementation

    def get(self, name: str) -> T:
        """Get an implementation by name."""
        if name not in self._implementations:
            raise KeyError(
                f"No {self.name.lower()} implementation registered with name: {name}"
            )
        return self._implementations[name]

    def __contains__(self, name: object) -> bool:
        return name in self._implementations

    def list(self) -> list[str]:
        """List all registered implementation names."""
        return list(self._implementations.keys())

    def freeze(self) -> None:
        """Freeze the registry to prevent further modifications."""
        self._frozen = True

    def is_frozen(self) -> bool:
        """Check if the registry is frozen."""
        return self._frozen


# Job Registry - maps a stored job type back to the class that rebuilds it
class JobFactory(Protocol):
    """Protocol for job classes that can be rebuilt from a stored payload."""

    job_type: str

    @classmethod
    def deserialize(cls, data: dict[str, Any]) -> Any:
        """
        Rebuild a job instance from the map produced by ``serialize()``.

        Args:
            data: Payload stored on the job record

        Returns:
            Job instance whose ``handle()`` behaves like the original
        """
        ...


JobFactoryT = TypeVar("JobFactoryT", bound=type)


class JobRegistry(Registry[JobFactory]):
    """Registry for job implementations, keyed by job type."""

    def __init__(self):
        super().__init__("Job")

    def register_job(self, job_class: JobFactoryT) -> JobFactoryT:
        """Register a job class under its ``job_type``; usable as a decorator."""
        job_type = getattr(job_class, "job_type", None)
        if not job_type:
            raise ValueError(f"{job_class.__name__} does not define a job_type")
        self.register(job_type, job_class)
        return job_class


# Global registry instance (singleton)
job_registry = JobRegistry()
