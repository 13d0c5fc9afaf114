from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="amm-bootstrap",
    version="0.1.0",
    description="Create, initialize and seed Uniswap V3 style liquidity pools",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "results", "venv"]),
    package_data={
        "amm_bootstrap": ["abis.json"],
        "amm_bootstrap.protocols.uniswap_v3": ["abis.json", "addresses.json"],
    },
    python_requires=">=3.8",
    install_requires=[
        "web3>=6.0.0",
        "python-dotenv>=1.0.0",
        "eth-account>=0.9.0",
        "eth-abi>=4.0.0",
        "structlog>=23.1.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "amm-bootstrap=amm_bootstrap.cli.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
