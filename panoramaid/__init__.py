from panoramaid.core.provider import PanoramaIdSubmodule

__all__ = ["PanoramaIdSubmodule"]
