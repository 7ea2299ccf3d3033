from local_functions.build.coordinator import BuildCoordinator, BuildManager, run_build

__all__ = ["BuildCoordinator", "BuildManager", "run_build"]
