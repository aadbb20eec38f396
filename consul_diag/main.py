#!/usr/bin/env python3
"""
Entry points for the Consul diagnostics tools.

consul-pprof:       capture heap/CPU/trace/goroutine profiles from an agent
consul-k8s-gather:  collect consul-k8s proxy diagnostics for a namespace
"""

import argparse
import logging
import sys

from .collectors import ProfileCollector, ProxyDiagnosticsCollector
from .common import (
    CaptureJob,
    GatherJob,
    ConsulAgentClient,
    ConsulK8sCLI,
    ConsulDiagError,
    DependencyInstallError,
    setup_logging
)
from .common.config import DEFAULT_CONSUL_ADDR, DEFAULT_DURATION, DEFAULT_NAMESPACE
from .installer import ensure_consul_k8s

logger = logging.getLogger(__name__)


def positive_int(value):
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid duration: {value!r}")
    if number <= 0:
        raise argparse.ArgumentTypeError(f"duration must be positive, got {number}")
    return number


def build_pprof_parser():
    parser = argparse.ArgumentParser(
        prog="consul-pprof",
        description="Collect Consul pprof profiles (heap, CPU profile, trace, goroutine)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Environment:
  CONSUL_HTTP_ADDR        Default agent address (default: {DEFAULT_CONSUL_ADDR})
  CONSUL_HTTP_TOKEN       ACL token sent as X-Consul-Token
  CONSUL_HTTP_SSL_VERIFY  Set to true to verify TLS certificates

Examples:
  # Local agent, 30 second CPU profile and trace
  consul-pprof

  # Remote agent with a 5 second window
  consul-pprof https://consul.example.com:8501 5
        """
    )

    parser.add_argument(
        'address',
        nargs='?',
        help='Consul agent address (default: $CONSUL_HTTP_ADDR or localhost)'
    )

    parser.add_argument(
        'duration',
        nargs='?',
        type=positive_int,
        default=DEFAULT_DURATION,
        help=f'CPU profile and trace duration in seconds (default: {DEFAULT_DURATION})'
    )

    parser.add_argument(
        '--output-dir',
        help='Base directory for the consul-pprof-<timestamp> folder (default: /tmp)'
    )

    parser.add_argument(
        '--verify-tls',
        action='store_true',
        default=None,
        help='Verify TLS certificates (default: off, or $CONSUL_HTTP_SSL_VERIFY)'
    )

    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug output'
    )

    return parser


def build_gather_parser():
    parser = argparse.ArgumentParser(
        prog="consul-k8s-gather",
        description="Ensures consul-k8s CLI is installed, then collects data for proxies in a namespace.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # All proxies in the default namespace, current kube context
  consul-k8s-gather

  # Only proxies whose names contain "web"
  consul-k8s-gather --namespace=payments --context prod-east --service web
        """
    )

    parser.add_argument(
        '-n', '--namespace',
        default=DEFAULT_NAMESPACE,
        help=f'Kubernetes namespace (default: "{DEFAULT_NAMESPACE}")'
    )

    parser.add_argument(
        '-c', '--context',
        help='Kube context to use (default: current context)'
    )

    parser.add_argument(
        '-s', '--service',
        help='Only collect data for pods whose names contain NAME'
    )

    parser.add_argument(
        '--output-dir',
        help='Base directory for the output folder (default: current directory)'
    )

    parser.add_argument(
        '--no-archive',
        action='store_true',
        help='Do not create tar.gz archive of results'
    )

    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug output'
    )

    return parser


def pprof_main(argv=None):
    """consul-pprof entry point. Returns the process exit code."""
    args = build_pprof_parser().parse_args(argv)
    setup_logging(debug=args.debug)

    try:
        job = CaptureJob.from_args(
            address=args.address,
            duration=args.duration,
            output_dir=args.output_dir,
            verify_tls=args.verify_tls
        )
        collector = ProfileCollector(job, ConsulAgentClient.from_job(job))
        # Preflight runs first; nothing touches disk until the agent has answered
        result = collector.collect()
        if result.failed:
            logger.warning(
                f"⚠️ {len(result.failed)} of {len(result.results)} profiles failed: "
                f"{', '.join(r.kind for r in result.failed)}"
            )
        return 0

    except KeyboardInterrupt:
        logger.warning("⚠️ Capture interrupted by user")
        return 130
    except ConsulDiagError as e:
        logger.error(f"❌ {e}")
        return 1
    except Exception as e:
        logger.error(f"❌ Error: {e}")
        logger.debug("Traceback:", exc_info=True)
        return 1


def gather_main(argv=None):
    """consul-k8s-gather entry point. Returns the process exit code."""
    args = build_gather_parser().parse_args(argv)
    setup_logging(debug=args.debug)

    try:
        ensure_consul_k8s()

        job = GatherJob.from_args(
            namespace=args.namespace,
            context=args.context,
            service=args.service,
            output_dir=args.output_dir,
            archive=not args.no_archive
        )

        ProxyDiagnosticsCollector(job, ConsulK8sCLI.from_job(job)).gather()
        return 0

    except KeyboardInterrupt:
        logger.warning("⚠️ Collection interrupted by user")
        return 130
    except DependencyInstallError as e:
        logger.error(str(e))
        logger.error("Failed to install consul-k8s automatically. Exiting.")
        return 1
    except ConsulDiagError as e:
        logger.error(f"❌ {e}")
        return 1
    except Exception as e:
        logger.error(f"❌ Error: {e}")
        logger.debug("Traceback:", exc_info=True)
        return 1


def run_pprof():
    sys.exit(pprof_main())


def run_gather():
    sys.exit(gather_main())
