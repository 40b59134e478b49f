"""Example: run a scripted pipeline over every .npy RGB image of a directory.

    python examples/run_pipeline.py examples/pipelines/grayscale.cl \
        examples/pipelines/grayscale.py images/ out/

Images are (height, width, 3) uint8 arrays saved with numpy.save. One executor
processes the whole directory, so buffers allocated by the script's init() are
reused across frames.
"""

import argparse
import glob
import os
import sys
import time

import numpy as np

from pipeline_runtime import PipelineConfig, PipelineError, PipelineExecutor, configure_logging


def run_directory(kernel_path: str, script_path: str, input_dir: str, output_dir: str, config: PipelineConfig) -> int:
    paths = sorted(glob.glob(os.path.join(input_dir, "*.npy")))
    if not paths:
        print(f"No .npy images in {input_dir}")
        return 0

    first = np.load(paths[0])
    executor = PipelineExecutor(config)
    executor.init(kernel_path, script_path, (first.shape[1], first.shape[0]))
    print(f"Device: {executor.backend.device_name}")

    os.makedirs(output_dir, exist_ok=True)
    failed = 0
    start = time.perf_counter()
    for i, path in enumerate(paths, 1):
        image = first if i == 1 else np.load(path)
        try:
            result = executor.compute(image)
        except PipelineError as e:
            # setup is done; a frame that fails is reported and skipped
            print(f"[{i}/{len(paths)}] {os.path.basename(path)}: {e}", file=sys.stderr)
            failed += 1
            continue
        np.save(os.path.join(output_dir, os.path.basename(path)), result)
        print(f"[{i}/{len(paths)}] {os.path.basename(path)}")
    elapsed = time.perf_counter() - start
    print(f"Processed {len(paths) - failed} images in {elapsed:.2f}s ({failed} failed)")
    return 1 if failed else 0


def main():
    parser = argparse.ArgumentParser(description="Run a scripted GPU image pipeline over a directory")
    parser.add_argument("kernels", help="Kernel source file (.cl for OpenCL, .py for the host backend)")
    parser.add_argument("script", help="Pipeline script defining init() and run()")
    parser.add_argument("input_dir")
    parser.add_argument("output_dir")
    parser.add_argument("--backend", default=None, help="opencl, cuda, metal or host")
    parser.add_argument("-p", "--platform-name", default=None)
    parser.add_argument("-d", "--device-name", default=None)
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()

    env_config = PipelineConfig.from_env()
    config = PipelineConfig(
        backend=args.backend or env_config.backend,
        platform_name=args.platform_name or env_config.platform_name,
        device_name=args.device_name or env_config.device_name,
        device_index=env_config.device_index,
        local_size=env_config.local_size,
        verbose=args.verbose or env_config.verbose,
    )
    configure_logging(config.verbose)

    try:
        sys.exit(run_directory(args.kernels, args.script, args.input_dir, args.output_dir, config))
    except PipelineError as e:
        print(f"Pipeline setup failed: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
