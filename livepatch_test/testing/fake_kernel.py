"""In-memory kernel and toolchain for exercising runs without privileges."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from livepatch_test.config import RunConfig
from livepatch_test.models.artifact import MODULE_SUFFIX
from livepatch_test.naming import FAIL_MARKER, LOADED_SUFFIX, PATCH_SUFFIX, TEST_SUFFIX
from livepatch_test.runners.base import CommandResult, CommandRunner

NO_FLAGS = "_"


@dataclass(kw_only=True)
class FakeKernel(CommandRunner):
    """Simulate the builder, loader, probes, ring buffer and debug control.

    Patches whose name carries ``-FAIL`` never build. A ``<name>-LOADED.test``
    probe observes patched behavior exactly while a module built from
    ``<name>.patch`` is loaded. Stale probes observe it all the time, broken
    probes never, sticky probes keep observing it once seen. Timeouts are
    injected with keys of the form ``build:<module>``, ``load:<module>``,
    ``unload:<module>`` or a probe file name.
    """

    config: RunConfig
    failing_builds: set[str] = field(default_factory=set)
    load_failures: set[str] = field(default_factory=set)
    unload_failures: set[str] = field(default_factory=set)
    stale_probes: set[str] = field(default_factory=set)
    broken_probes: set[str] = field(default_factory=set)
    sticky_probes: set[str] = field(default_factory=set)
    custom_results: dict[str, int] = field(default_factory=dict)
    timeouts: set[str] = field(default_factory=set)
    oops_on_load: set[str] = field(default_factory=set)
    debug_flags: str | None = NO_FLAGS
    debug_readable: bool = True
    ring_buffer: list[str] = field(default_factory=list)
    ring_buffer_readable: bool = True
    builder_log_text: str = "builder diagnostics\n"

    modules: dict[str, set[str]] = field(default_factory=dict)
    loaded: list[str] = field(default_factory=list)
    observed: set[str] = field(default_factory=set)
    commands: list[tuple[str, ...]] = field(default_factory=list)

    def calls(self, *prefix: str) -> Sequence[tuple[str, ...]]:
        """Commands run so far that start with the given arguments."""
        return [c for c in self.commands if c[: len(prefix)] == prefix]

    @property
    def builds(self) -> Sequence[str]:
        """Module names passed to the builder, in order."""
        return [c[c.index("-n") + 1] for c in self.calls(*self.config.builder_command)]

    @property
    def loads(self) -> Sequence[str]:
        """Module names passed to the loader's load command, in order."""
        return [
            Path(c[-1]).name.removesuffix(MODULE_SUFFIX)
            for c in self.calls(*self.config.loader_command, "load")
        ]

    async def run(
        self,
        command: Sequence[str],
        *,
        input: str | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        """Dispatch a command to the simulated tool it names."""
        command = tuple(command)
        self.commands.append(command)

        for tool, handler in (
            (self.config.builder_command, self._build),
            (self.config.loader_command, self._loader),
            (self.config.kernel_log_command, self._kernel_log),
            (self.config.debug_read_command, self._debug_read),
            (self.config.debug_write_command, self._debug_write),
        ):
            tool = tuple(tool)
            if command[: len(tool)] == tool:
                return handler(command[len(tool) :], input)
        return self._probe(Path(command[0]).name)

    def _build(self, args: tuple[str, ...], _: str | None) -> CommandResult:
        index = args.index("-n")
        module = args[index + 1]
        prefixes = {Path(p).name.removesuffix(PATCH_SUFFIX) for p in args[index + 2 :]}

        if f"build:{module}" in self.timeouts:
            return CommandResult(returncode=-9, timed_out=True)
        if module in self.failing_builds or any(FAIL_MARKER in p for p in prefixes):
            self.config.builder_log.parent.mkdir(parents=True, exist_ok=True)
            self.config.builder_log.write_text(self.builder_log_text)
            return CommandResult(returncode=1, output=f"ERROR: {module} failed\n")

        self.modules[module] = prefixes
        (self.config.output_dir / f"{module}{MODULE_SUFFIX}").write_text(module)
        return CommandResult(returncode=0, output=f"{module}{MODULE_SUFFIX} built\n")

    def _loader(self, args: tuple[str, ...], _: str | None) -> CommandResult:
        match args:
            case ("unload", "--all"):
                self.loaded.clear()
                return CommandResult(returncode=0)
            case (action, path):
                module = Path(path).name.removesuffix(MODULE_SUFFIX)
            case _:
                return CommandResult(returncode=2, output="usage\n")

        if f"{action}:{module}" in self.timeouts:
            return CommandResult(returncode=-9, timed_out=True)

        if action == "load":
            if not Path(path).exists() or module in self.load_failures:
                return CommandResult(returncode=1, output=f"cannot load {module}\n")
            self.loaded.append(module)
            if module in self.oops_on_load:
                self.ring_buffer.append(f"WARNING: {module}\nCall Trace:\n")
            return CommandResult(returncode=0, output=f"loading {module}\n")

        if module not in self.loaded or module in self.unload_failures:
            return CommandResult(returncode=1, output=f"cannot unload {module}\n")
        self.loaded.remove(module)
        return CommandResult(returncode=0, output=f"unloading {module}\n")

    def _kernel_log(self, args: tuple[str, ...], _: str | None) -> CommandResult:
        if args == ("-C",):
            self.ring_buffer.clear()
            return CommandResult(returncode=0)
        if not self.ring_buffer_readable:
            return CommandResult(returncode=1, output="Operation not permitted\n")
        return CommandResult(returncode=0, output="".join(self.ring_buffer))

    def _debug_read(self, args: tuple[str, ...], _: str | None) -> CommandResult:
        if not self.debug_readable:
            return CommandResult(returncode=1, output="Permission denied\n")
        lines = ["# filename:lineno [module]function flags format\n"]
        if self.debug_flags is not None:
            lines.append(
                "kernel/livepatch/transition.c:277 "
                f"[livepatch]{self.config.debug_function} ={self.debug_flags} "
                '"%s: %s:%d is sleeping on function %s\\012"\n'
            )
        return CommandResult(returncode=0, output="".join(lines))

    def _debug_write(self, args: tuple[str, ...], input: str | None) -> CommandResult:
        _, function, change = (input or "").split()
        if self.debug_flags is None or function != self.config.debug_function:
            return CommandResult(returncode=1, output="tee: Invalid argument\n")

        op, new = change[0], change[1:]
        flags = self.debug_flags.replace(NO_FLAGS, "")
        if op == "+":
            flags += "".join(f for f in new if f not in flags)
        elif op == "-":
            flags = "".join(f for f in flags if f not in new)
        else:
            flags = new.replace(NO_FLAGS, "")
        self.debug_flags = flags or NO_FLAGS
        return CommandResult(returncode=0, output=input or "")

    def _probe(self, name: str) -> CommandResult:
        if name in self.timeouts:
            return CommandResult(returncode=-9, timed_out=True)

        prefix = name.removesuffix(TEST_SUFFIX)
        if not prefix.endswith(LOADED_SUFFIX):
            return CommandResult(returncode=self.custom_results.get(name, 0))

        patch = prefix.removesuffix(LOADED_SUFFIX)
        patched = any(patch in self.modules.get(m, set()) for m in self.loaded)
        if name in self.stale_probes or (
            name in self.sticky_probes and name in self.observed
        ):
            patched = True
        if name in self.broken_probes:
            patched = False
        if patched:
            self.observed.add(name)
        return CommandResult(returncode=0 if patched else 1, output=f"{name}\n")
