"""Output collaborator — summary files and the llms.txt index."""

from sitedigest.output.writer import FileOutputWriter, IndexEntry, build_llms_txt, site_output_root

__all__ = ["FileOutputWriter", "IndexEntry", "build_llms_txt", "site_output_root"]
