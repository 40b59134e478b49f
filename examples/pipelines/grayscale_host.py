# numpy versions of grayscale.cl for the host backend:
#
#     PIPELINE_BACKEND=host python examples/run_pipeline.py \
#         examples/pipelines/grayscale_host.py examples/pipelines/grayscale.py in/ out/


def grayscale(src, weights, dst, width, height):
    rgb = src.reshape(-1, 3).astype(np.float64)
    gray = np.clip(rgb @ weights, 0, 255).astype(np.uint8)
    dst.reshape(-1, 3)[:] = gray[:, None]


def brighten(src, dst, amount, width, height):
    dst[:] = np.clip(src.astype(np.int64) + int(amount), 0, 255).astype(np.uint8)
