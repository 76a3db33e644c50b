"""Setup file for PoseGate project."""

from setuptools import find_packages, setup

setup(
    name="posegate",
    version="0.1.0",
    packages=find_packages(where="src") + ["webapp"],
    package_dir={"": "src", "webapp": "webapp"},
    install_requires=[
        "numpy",
        "opencv-python",
        "mediapipe",
        "pydantic>=2",
        "python-dotenv",
        "fastapi",
        "uvicorn",
    ],
    extras_require={
        "test": ["pytest", "httpx"],
    },
    python_requires=">=3.10",
)
