#!/usr/bin/env python3
"""
Main entry point for multi-scan ICP registration.

Each scan is registered in turn against all scans processed before it, then
the merged, aligned points are written out.
"""

import argparse
import logging
import sys

from scanalign import RegistrationSession, load_config
from scanalign.io import load_result, save_points, save_result
from scanalign.utils import set_log_level, setup_logger
from scanalign.visualization import plot_convergence, plot_samples, show_scans

logger = setup_logger("scanalign.cli")


def run_registration(mesh_paths, method='point_to_point', iterations=50, tolerance=1e-6,
                     config_path=None, output='merged_points.txt', result_file='icp_results.pkl',
                     plot=False, show=False):
    """Register all scans and save the merged points."""
    config = load_config(config_path)

    logger.info("Loading %d scans...", len(mesh_paths))
    session = RegistrationSession(mesh_paths, config)
    if len(session.scans) < 2:
        logger.error("Need at least two scans to register")
        return None

    tangential = method == 'point_to_plane'
    histories = session.register_all(max_iterations=iterations, tolerance=tolerance,
                                     tangential=tangential)

    for i, history in enumerate(histories, 1):
        failed = [r for r in history.results if not r.success]
        status = "converged" if history.converged else "stopped"
        logger.info("Scan %d: %s after %d steps, residual %.6f -> %.6f%s",
                    i, status, len(history.results), history.residuals[0],
                    history.residuals[-1], f" ({failed[-1].message})" if failed else "")

    for i, t in enumerate(session.transformations):
        logger.info("Transformation %d:\n%s", i, t.matrix)

    save_points(output, session.scans[:session.num_processed],
                session.transformations[:session.num_processed])
    save_result(result_file, session.transformations,
                [h.residuals for h in histories],
                [s.name for s in session.scans])

    if plot:
        plot_convergence([h.residuals for h in histories])
        plot_samples(session.current_world_scan().points, session.sampled_indices)
    if show:
        show_scans(session.world_scans(), current=session.current_index)

    return session


def load_and_report(filepath='icp_results.pkl'):
    """Print a previously saved result."""
    result = load_result(filepath)
    if result is None:
        return None

    names = result.get('scan_names') or [None] * len(result['transformations'])
    for i, (name, t) in enumerate(zip(names, result['transformations'])):
        logger.info("Scan %d (%s): %r", i, name, t)
    for i, residuals in enumerate(result.get('residuals') or [], 1):
        if residuals:
            logger.info("Registration %d: residual %.6f -> %.6f (%d steps)",
                        i, residuals[0], residuals[-1], len(residuals) - 1)
    return result


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Multi-scan ICP registration',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Point-to-point registration of three scans
  python run_icp.py register scan0.ply scan1.ply scan2.ply

  # Point-to-plane registration with a YAML config
  python run_icp.py register scan*.ply --method point_to_plane --config config/default.yaml

  # Report saved results
  python run_icp.py load
        """
    )
    parser.add_argument('--verbose', action='store_true', help='Log debug output')

    subparsers = parser.add_subparsers(dest='mode', help='Mode')

    register_parser = subparsers.add_parser('register', help='Register scans incrementally')
    register_parser.add_argument('meshes', nargs='+', help='Mesh files, in processing order')
    register_parser.add_argument('--method', type=str, default='point_to_point',
                                 choices=['point_to_point', 'point_to_plane'],
                                 help='ICP method: point_to_point (default) or point_to_plane')
    register_parser.add_argument('--iterations', type=int, default=50,
                                 help='Maximum registration steps per scan')
    register_parser.add_argument('--tolerance', type=float, default=1e-6,
                                 help='Stop when the residual changes less than this')
    register_parser.add_argument('--config', type=str, default=None, help='YAML config file')
    register_parser.add_argument('--output', type=str, default='merged_points.txt',
                                 help='Merged points output file')
    register_parser.add_argument('--results', type=str, default='icp_results.pkl',
                                 help='Pickled transformations output file')
    register_parser.add_argument('--plot', action='store_true',
                                 help='Save convergence and subsample plots')
    register_parser.add_argument('--show', action='store_true',
                                 help='Show the registered scans')

    load_parser = subparsers.add_parser('load', help='Report saved results')
    load_parser.add_argument('--file', type=str, default='icp_results.pkl',
                             help='Path to saved results file')

    args = parser.parse_args(argv)

    if args.verbose:
        set_log_level(logging.DEBUG)

    if args.mode == 'register':
        session = run_registration(
            args.meshes,
            method=args.method,
            iterations=args.iterations,
            tolerance=args.tolerance,
            config_path=args.config,
            output=args.output,
            result_file=args.results,
            plot=args.plot,
            show=args.show,
        )
        return 0 if session is not None else 1
    elif args.mode == 'load':
        return 0 if load_and_report(args.file) is not None else 1

    parser.print_help()
    return 1


if __name__ == '__main__':
    sys.exit(main())
