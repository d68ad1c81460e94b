"""
Lays out the final installation and wraps nimble.

The install script generated by niminst is run against an isolated root in
the temp directory. The tree is flattened, extra tools are copied in, the
compiler config is pointed at a package directory private to this version,
and bin/nimble is replaced by a wrapper that pins --nimbleDir (and --nim
where supported). Only once the wrapper has proven it works is the tree
moved to its permanent location.
"""

import logging
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader

from nimkit.core.context import BuildContext
from nimkit.core.exceptions import InstallError, WrapperVerificationFailure
from nimkit.core.filesystem import (
    FilesystemError,
    copy_contents,
    make_executable,
    move_contents,
    move_into_place,
)
from nimkit.core.reporter import StepReporter
from nimkit.toolchain.request import InstallRequest
from nimkit.toolchain.versions import parse_version

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"
WRAPPER_TEMPLATE = "nimble_wrapper.sh.j2"
ORIGINAL_SUFFIX = ".original"
PACKAGE_INDEX = "packages_official.json"

# nimble shipped with Nim 0.x does not accept --nim
NIM_FLAG_MIN_MAJOR = 1


def supports_nim_flag(request: InstallRequest) -> bool:
    """
    Whether the nimble shipped with request accepts an explicit --nim flag.

    Refs and unparseable versions are assumed to be recent.
    """
    if request.is_ref:
        return True
    version = parse_version(request.version)
    if version is None:
        return True
    return version.numbers[0] >= NIM_FLAG_MIN_MAJOR


def render_wrapper(
    request: InstallRequest,
    original_name: str = "nimble" + ORIGINAL_SUFFIX,
    template_dir: Optional[Path] = None,
) -> str:
    """Render the nimble wrapper script for request."""
    env = Environment(
        loader=FileSystemLoader(str(template_dir or TEMPLATE_DIR)),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )
    template = env.get_template(WRAPPER_TEMPLATE)
    return template.render(
        version=request.version_spec,
        original_name=original_name,
        use_path=not supports_nim_flag(request),
    )


class Installer:
    """
    Installs a built (or prebuilt) Nim tree into its final location.

    Args:
        reporter: Step reporter
        template_dir: Override for the wrapper template directory
    """

    def __init__(self, reporter: StepReporter, template_dir: Optional[Path] = None):
        self.reporter = reporter
        self.template_dir = template_dir

    def install(self, ctx: BuildContext, request: InstallRequest, install_path: Path):
        """
        Install ctx.download_dir into install_path.

        Raises:
            InstallError: If laying out or moving the tree fails
            WrapperVerificationFailure: If the nimble wrapper does not work
        """
        install_path = Path(install_path)
        root = ctx.install_root
        src = ctx.download_dir

        self.reporter.section("Installing")

        with self.reporter.step("Running install.sh"):
            self.reporter.run(["sh", "install.sh", str(root)], cwd=src, error=InstallError)

        with self.reporter.step("Copying binaries"):
            self._flatten(root)
            self.reporter.write(f"+ cp -R {src / 'bin'}/* {root / 'bin'}")
            self._guard(copy_contents, src / "bin", root / "bin")

        with self.reporter.step("Updating nim.cfg"):
            self.write_nimble_path(root, install_path)

        with self.reporter.step("Wrapping nimble"):
            self.wrap_nimble(root, request)
            self.verify_wrapper(root)

        with self.reporter.step(f"Moving installation files to {install_path}"):
            self.reporter.write(f"+ mv {root} {install_path}")
            self._guard(move_into_place, root, install_path)

    def _flatten(self, root: Path):
        nested = root / "nim"
        if nested.is_dir():
            self.reporter.write(f"+ mv {nested}/* {root}")
            self._guard(move_contents, nested, root)
            nested.rmdir()

    def _guard(self, func, *args):
        try:
            func(*args)
        except (FilesystemError, OSError) as e:
            raise InstallError(str(e)) from e

    def write_nimble_path(self, root: Path, install_path: Path) -> Path:
        """
        Append a nimblepath directive pointing inside this version's tree.

        The directory is created under root; the directive names its final
        location under install_path.
        """
        config = root / "config" / "nim.cfg"

        line = f'nimblepath="{install_path / "nimble" / "pkgs"}/"'
        self.reporter.write(f"+ echo '{line}' >> {config}")
        try:
            (root / "nimble" / "pkgs").mkdir(parents=True, exist_ok=True)
            config.parent.mkdir(parents=True, exist_ok=True)
            with open(config, "a", encoding="utf-8") as f:
                f.write("\n" + line + "\n")
        except OSError as e:
            raise InstallError(f"Failed to update {config}: {e}") from e
        return config

    def wrap_nimble(self, root: Path, request: InstallRequest) -> Path:
        """Move bin/nimble aside and write the wrapper in its place."""
        nimble = root / "bin" / "nimble"
        original = nimble.with_name(nimble.name + ORIGINAL_SUFFIX)
        if not nimble.is_file():
            raise InstallError(f"nimble binary not found: {nimble}")

        self.reporter.write(f"+ mv {nimble} {original}")
        self._guard(nimble.replace, original)

        content = render_wrapper(request, original.name, self.template_dir)
        self.reporter.write(f"+ cat > {nimble}")
        self.reporter.write(content)
        self._guard(self._write_script, nimble, content)
        return nimble

    @staticmethod
    def _write_script(path: Path, content: str):
        path.write_text(content, encoding="utf-8")
        make_executable(path)

    def verify_wrapper(self, root: Path):
        """
        Refresh the package index through the wrapper.

        Raises:
            WrapperVerificationFailure: If the refresh fails or produces no index
        """
        nimble = root / "bin" / "nimble"
        self.reporter.run([str(nimble), "refresh"], cwd=root, error=WrapperVerificationFailure)

        index = root / "nimble" / PACKAGE_INDEX
        if not index.is_file():
            raise WrapperVerificationFailure(f"nimble refresh did not create {index}")


__all__ = ["Installer", "render_wrapper", "supports_nim_flag"]
