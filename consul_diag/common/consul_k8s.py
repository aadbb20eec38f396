#!/usr/bin/env python3
"""consul-k8s CLI wrapper for proxy diagnostics."""

from .utils import run_to_file

BINARY = "consul-k8s"


class ConsulK8sCLI:
    """Builds and runs consul-k8s commands scoped to a namespace and kube context."""

    def __init__(self, namespace, context=None, binary=BINARY, runner=None):
        """
        Initialize the CLI wrapper.

        Args:
            namespace: Kubernetes namespace passed to namespaced commands
            context: Optional kube context (default: current context)
            binary: consul-k8s executable name or path
            runner: Callable(command, output_file) -> exit code
        """
        self.namespace = namespace
        self.context = context
        self.binary = binary
        self.runner = runner or run_to_file

    @classmethod
    def from_job(cls, job):
        return cls(job.namespace, context=job.context)

    def _build_command(self, *args, namespaced=True, **options):
        """
        Build a consul-k8s argument list.

        Args:
            *args: Subcommand and positional arguments
            namespaced: Append --namespace
            **options: Extra --flag value pairs (None values are skipped)

        Returns:
            list: Complete argument list
        """
        command = [self.binary, *args]
        if self.context:
            command += ["--context", self.context]
        if namespaced:
            command += ["--namespace", self.namespace]

        for key, value in options.items():
            if value is None:
                continue
            command += [f"--{key.replace('_', '-')}", str(value)]
        return command

    def status(self):
        return self._build_command("status", namespaced=False)

    def proxy_list(self):
        return self._build_command("proxy", "list")

    def proxy_diagnostics(self, proxy_name):
        """
        The diagnostic battery for one proxy, in collection order.

        Returns:
            list: (artifact file name, argument list) tuples
        """
        return [
            ("proxy_read_table.txt", self._build_command("proxy", "read", proxy_name)),
            ("proxy_read.json", self._build_command("proxy", "read", proxy_name, output="json")),
            ("proxy_read_raw.json", self._build_command("proxy", "read", proxy_name, output="raw")),
            ("proxy_stats.txt", self._build_command("proxy", "stats", proxy_name)),
            ("proxy_log_levels.txt", self._build_command("proxy", "log", proxy_name)),
            ("troubleshoot_upstreams.txt",
             self._build_command("troubleshoot", "upstreams", "--pod", proxy_name)),
        ]

    def run(self, command, output_file):
        """Run a command, writing combined output to output_file. Never raises on exit code."""
        return self.runner(command, output_file)
