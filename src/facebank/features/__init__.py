"""Classical face descriptors (LBP, HOG, landmark geometry)."""

from facebank.features.codec import CodecOutput, DescriptorCodec, zscore
from facebank.features.geometry import geometric_features
from facebank.features.texture import hog_histogram, lbp_histogram, working_image

__all__ = [
    "DescriptorCodec",
    "CodecOutput",
    "zscore",
    "geometric_features",
    "hog_histogram",
    "lbp_histogram",
    "working_image",
]
