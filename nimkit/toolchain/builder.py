"""
Bootstraps Nim from source.

Stages run strictly in order and each is skipped when its output already
exists, so rerunning against the same working tree picks up where a
previous run stopped:

    1. seed       copy an existing nim into bin/nim
    2. bootstrap  build.sh, or build_all.sh when there is no nim at all
    3. koch       compile the build driver
    4. nim        ./koch boot -d:release
    5. tools      ./koch tools -d:release
    6. nimble     ./koch nimble -d:release
    7. niminst    generate install.sh

Any failing command raises BuildFailure and aborts the install.
"""

import logging
import os
import shutil
from pathlib import Path
from typing import List, Mapping, Optional

from nimkit.core.context import BuildContext
from nimkit.core.exceptions import BuildFailure
from nimkit.core.filesystem import find_executable, find_executable_file
from nimkit.core.reporter import StepReporter

logger = logging.getLogger(__name__)

SHIM_MARKERS = (os.path.join(".asdf", "shims"),)


def has_prebuilt_binaries(tree: Path) -> bool:
    """True if tree already holds a usable nim and nimble (binary release)."""
    return (Path(tree) / "bin" / "nimble").is_file()


class Builder:
    """
    Builds nim, koch, tools, nimble and install.sh in the download tree.

    Args:
        reporter: Step reporter
        installs_dir: Directory of sibling installed versions to seed from
        environ: Environment used for the seed PATH lookup
    """

    def __init__(
        self,
        reporter: StepReporter,
        installs_dir: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.reporter = reporter
        self.installs_dir = Path(installs_dir) if installs_dir else None
        self.environ = os.environ if environ is None else environ

    def build(self, ctx: BuildContext):
        """
        Run all build stages in ctx.download_dir.

        Raises:
            BuildFailure: If any stage fails
            SignalInterrupt: If the install was cancelled
        """
        src = ctx.download_dir
        jobs = f"--parallelBuild:{ctx.concurrency}"
        (src / "bin").mkdir(exist_ok=True)

        self.reporter.section(f"Building Nim in {src}")

        self.seed(src)
        bootstrapped = self.bootstrap(src)

        with self.reporter.step("Building koch") as step:
            if not bootstrapped or (src / "koch").is_file():
                step.skip()
            else:
                self._run(["bin/nim", "c", jobs, "koch"], src)

        with self.reporter.step("Building nim") as step:
            if not bootstrapped:
                step.skip()
            else:
                self._run(["./koch", "boot", jobs, "-d:release"], src)

        with self.reporter.step("Building tools") as step:
            if not bootstrapped:
                step.skip()
            else:
                self._run(["./koch", "tools", jobs, "-d:release"], src)

        with self.reporter.step("Building nimble") as step:
            if (src / "bin" / "nimble").is_file():
                step.skip()
            else:
                self._run(["./koch", "nimble", jobs, "-d:release"], src)

        with self.reporter.step("Generating install.sh") as step:
            if (src / "install.sh").is_file():
                step.skip()
            else:
                self._run(["bin/nim", "c", jobs, "tools/niminst/niminst"], src)
                self._run(
                    ["./tools/niminst/niminst", "scripts", "./compiler/installer.ini"],
                    src,
                )

    def seed(self, src: Path) -> Optional[Path]:
        """Copy an existing nim into bin/nim if the tree has none."""
        target = src / "bin" / "nim"
        if target.is_file():
            return None

        with self.reporter.step("Checking for existing nim to bootstrap with") as step:
            existing = self.find_seed()
            if existing is None:
                step.skip()
                return None
            self.reporter.write(f"+ cp {existing} {target}")
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(existing, target)
            except OSError as e:
                raise BuildFailure(f"Failed to copy {existing} to {target}: {e}")
            logger.debug(f"Seeded bootstrap with {existing}")
            return existing

    def find_seed(self) -> Optional[Path]:
        """Find a nim on PATH (ignoring version manager shims) or in a sibling install."""
        path_env = self.environ.get("PATH", "")
        search_paths = [Path(p) for p in path_env.split(os.pathsep) if p]
        found = find_executable("nim", search_paths, exclude=self._is_shim_dir)
        if found is not None:
            return found
        if self.installs_dir is not None:
            return find_executable_file(self.installs_dir, "*/bin/nim")
        return None

    def _is_shim_dir(self, directory: Path) -> bool:
        text = str(directory)
        data_dir = self.environ.get("ASDF_DATA_DIR")
        if data_dir and Path(text) == Path(data_dir) / "shims":
            return True
        return any(marker in text for marker in SHIM_MARKERS)

    def bootstrap(self, src: Path) -> bool:
        """
        Produce an initial compiler.

        Returns:
            True if the koch/nim/tools stages should run afterwards, False
            if build_all.sh already built everything
        """
        with self.reporter.step("Building with build.sh") as step:
            if (src / "build.sh").is_file():
                self._run(["sh", "build.sh"], src)
                return True
            step.skip()

        if (src / "bin" / "nim").is_file():
            return True

        with self.reporter.step("Building with build_all.sh"):
            self._run(["sh", "build_all.sh"], src)
        return False

    def _run(self, args: List[str], cwd: Path):
        self.reporter.run(args, cwd=cwd)


__all__ = ["Builder", "has_prebuilt_binaries"]
