from setuptools import setup, find_packages

setup(
    name="chart-momentum-forecaster",
    version="2.0.0",
    description="Next-week chart rank and viewership forecasts from momentum, tracker and market signals",
    packages=find_packages(include=["chartcast", "chartcast.*"]),
    package_data={"chartcast.knowledge": ["data/*.json"]},
    install_requires=[
        "numpy>=1.22.4",
        "pandas>=1.5.3",
        "pytz>=2022.7",
        "scipy>=1.10.0",
        "requests>=2.31.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    python_requires=">=3.8",
    entry_points={
        "console_scripts": [
            "chartcast=chartcast.main:main",
        ],
    },
)
