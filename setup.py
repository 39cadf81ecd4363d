from setuptools import setup, find_packages


setup(
    name="carpack",
    version="0.1",
    packages=find_packages(include=["carpack", "carpack.*"]),
    description="Deterministic CARv1/CARv2 content-addressable archives with a multihash-sorted index.",
    author="carpack contributors",
    python_requires=">=3.9",
    install_requires=[
        "multiformats>=0.3.1",
        "dag-cbor>=0.3.3",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "carpack=carpack.cli:main",
        ]
    },
)
