"""Setup configuration for the CameraConnect relay and client."""

from setuptools import setup, find_packages

setup(
    name="cameraconnect",
    version="0.1.0",
    description="Pair two devices by session id and move photos and files over a direct peer connection",
    author="CameraConnect Team",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.9",
    install_requires=[
        "websockets>=12.0",
        "aiohttp>=3.9",
        "aiortc>=1.6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
    entry_points={
        "console_scripts": [
            "cameraconnect-relay=relay.main:main",
            "cameraconnect=client.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
