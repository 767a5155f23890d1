import setuptools

setuptools.setup(
    name="aionegotiate",
    version="0.1.0",
    description="Perfect negotiation of WebRTC sessions for asyncio",
    long_description=(
        "aionegotiate drives the offer / answer and ICE candidate exchange of "
        "a WebRTC peer connection, resolving glare with the perfect "
        "negotiation pattern. It ships a binding for aiortc and signaling "
        "adapters for TCP, Unix sockets and WebSockets."
    ),
    license="BSD-3-Clause",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Environment :: Web Environment",
        "Intended Audience :: Developers",
        "Operating System :: OS Independent",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
    ],
    python_requires=">=3.9",
    package_dir={"": "src"},
    packages=["aionegotiate"],
    install_requires=[
        "aiortc>=1.9.0",
        "pyee>=9.0.0",
        "websockets>=10.0",
    ],
    extras_require={
        "dev": [
            "coverage[toml]>=7.2.2",
            "typing_extensions>=4.0.0; python_version < '3.10'",
        ],
    },
)
