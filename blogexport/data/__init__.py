"""Static Blogger settings and template data used by the transcoder."""
