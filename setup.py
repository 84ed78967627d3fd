from setuptools import find_packages
from setuptools import setup

setup(
    name="tbsim",
    version="0.1.0",
    description="Agent-based tuberculosis transmission simulator with demographic dynamics and beta calibration",
    python_requires=">=3.8",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    include_package_data=True,
    install_requires=[
        "click",
        "matplotlib",
        "numpy",
        "pandas",
        "tqdm",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "tbsim = tbsim.cli:main",
            "tbsim-summarize = tbsim.cli:summarize",
            "tbsim-synth = tbsim.cli:synth",
        ],
    },
)
