# Pipeline script: luminance grayscale followed by a brightness lift.

import numpy as np

BRIGHTEN_AMOUNT = np.int32(16)


def init():
    ocl.create_float_buffer("weights", [0.299, 0.587, 0.114])
    ocl.create_dynimage("gray")


def run():
    ocl.call_kernel("grayscale", [input, weights, gray])
    ocl.call_kernel("brighten", [gray, output, BRIGHTEN_AMOUNT])
