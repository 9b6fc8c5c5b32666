# librarian

Building blocks for turning books, papers and source code into chunks with
embedding vectors, and for keeping track of what has been processed. Each
stage of the pipeline is a small, swappable adapter:

| Stage    | Module                         | Adapters                                                    |
|----------|--------------------------------|-------------------------------------------------------------|
| Extract  | `librarian.extractors`         | `TextExtractor`, `CodeExtractor`                            |
|          | `librarian.ebook`              | `EbookExtractor`                                            |
|          | `librarian.pdf`                | `PdfExtractor`                                              |
| Chunk    | `librarian.chunking`           | `BlankLineChunker`, `CodeChunker`                           |
| Embed    | `librarian.embedders`          | `StubEmbedder`, `MultimodalStubEmbedder`                    |
|          | `librarian.remote_embedders`   | `OpenAiEmbedder`, `VoyageEmbedder`                          |
|          | `librarian.fallback`           | `FallbackEmbedder`                                          |
| Index    | `librarian.mem_indexer`        | `MemIndexer`                                                |
| Cache    | `librarian.cache`              | `MemCache`, `FsCache`                                       |
| Manifest | `librarian.manifest`           | `MemManifest`, `SqliteManifest`                             |
| Snapshot | `librarian.snapshot`           | `QdrantNasSnapshotter`                                      |

The shared value types (`Document`, `ExtractedText`, `TextSpan`, `Chunk`,
the `BookMeta` / `PaperMeta` / `CodeMeta` / `FigureMeta` payloads,
`ContentType`, `ManifestStatus` and the error classes) live in
`librarian.domain`.

Extractors, chunkers, embedders (apart from `MultimodalStubEmbedder`), the
indexer and the snapshotter carry a `name` attribute and `version()` and
`config_hash()` methods, which together identify what produced a stage's
output.

## Installing

```
pip install .
pip install ".[test]"   # adds pytest and responses
```

## A minimal pipeline

```python
from librarian.domain import ContentType, Document
from librarian.extractors import TextExtractor
from librarian.chunking import BlankLineChunker
from librarian.embedders import StubEmbedder
from librarian.mem_indexer import MemIndexer

doc = Document(
    source_id="notes",
    source_hash="h",
    content_type=ContentType.BOOK,
    path="notes.txt",
)

text = TextExtractor().extract(doc)
chunks = BlankLineChunker().chunk(doc, text)       # one chunk per paragraph
vectors = StubEmbedder().embed([c.text for c in chunks])

index = MemIndexer()
index.replace(doc.source_id, chunks, vectors)       # drops this source's older points
print(index.count())
```

`BlankLineChunker` splits every span on blank lines, numbers the chunks from
zero and gives each a `BookMeta`, `PaperMeta` or `CodeMeta` payload according
to the document's `ContentType`. It raises `ChunkError` when there is nothing
to chunk.

`StubEmbedder` derives each vector from the SHA-256 digest of the text (32
values by default), so the same text always gives the same vector.
`MultimodalStubEmbedder` does the same for raw bytes through `embed_image`
and `embed_batch`.

`MemIndexer` keeps points keyed by chunk id: `upsert` overwrites, `replace`
first removes every point of the source, and `delete_by_source_id` removes
them outright. Passing different numbers of chunks and vectors raises
`LengthMismatchError`.

## Code repositories

`should_include(path)` decides which files of a directory walk are worth
reading: it skips paths running through `DEFAULT_SKIP_DIRS` (`.git`,
`target`, `node_modules`, `vendor`, `build` and the like) and keeps files whose
extension is in `DEFAULT_INCLUDE_EXTS`. `CodeExtractor` reads a file as one
code span and raises `EncodingError` if it is not UTF-8.

`CodeChunker` splits the text into overlapping line windows (30 lines with
5 of overlap by default; the window must exceed the overlap) and tags each
chunk with the language returned by `detect_language`.

## Hosted embedding providers

`OpenAiEmbedder` and `VoyageEmbedder` call the providers' HTTP APIs in
batches (96 and 64 texts by default). Build them from `OpenAiConfig` /
`VoyageConfig`, or use `from_env` to read the key from `OPENAI_API_KEY` or
`VOYAGE_API_KEY`:

```python
from librarian.remote_embedders import VoyageConfig, VoyageEmbedder

embedder = VoyageEmbedder("placeholder", VoyageConfig(model="voyage-code-3", dimensions=1024))
vectors = embedder.embed(["fn main() {}"])        # sent with input_type "document"
query = embedder.embed_query("entry point")      # sent with input_type "query"
```

An empty key, or an unset environment variable, raises `MissingApiKeyError`.
Failures are classified by `classify`: HTTP 408, 429 and 5xx, timeouts and
connection errors raise `RecoverableError`; any other failure, an empty batch
or a response with the wrong number of embeddings raises `TerminalError`.

`FallbackEmbedder(primary, fallback)` builds on that split. A recoverable
failure of the primary hands the batch to the fallback and records a
`FallbackEvent`; a terminal failure of the primary is raised as it is. If the
fallback fails too, a `TerminalError` carrying both messages is raised.
`last_event()` returns the event of the last call once, then `None`. Both
embedders must have the same dimension.

## Ebooks and PDFs

`EbookExtractor` converts EPUB with `pandoc` (MOBI, AZW and AZW3 go through
calibre's `ebook-convert` first) and tidies the result with `clean`, which
turns calibre's `kbd` spans into backticks and removes leftover spans, divs,
figures, images and excess blank lines. `PdfExtractor` runs `marker_single`
and reads back the markdown it writes. The programs are looked up on `PATH`
unless given to the constructor or named by `PANDOC_BIN`,
`EBOOK_CONVERT_BIN` or `MARKER_BIN`.

## Caching and bookkeeping

`FsCache` stores values under a root directory, sharded by the first two
characters of the key, and writes atomically (temporary file, fsync,
rename); a missing key reads as `None`. `MemCache` does the same in memory.

`SqliteManifest` keeps one row per `(source_id, stage)` with a
`ManifestStatus`, attempt count, error and output reference; recording the
same pair again updates the row. It can be used as a context manager.
`get_row` fetches a single row as a `ManifestRow`, and
`distinct_ingested_sources` lists sources with a Success, Cached or
RecoveredViaFallback row. `MemManifest` keeps every recorded row in order.

## Snapshots

`QdrantNasSnapshotter(qdrant_url, collection, nas_path)` asks a Qdrant
server for a collection snapshot, copies the file into `nas_path` as
`<collection>__<name>`, and deletes it from the server. `restore` uploads a
stored snapshot back (raising `SnapshotNotFoundError` if it is not there),
`list` returns the collection's stored snapshot ids, and `prune(keep_last)`
deletes all but the newest ones by modification time.

## What this package does not do

The only vector index here is the in-memory `MemIndexer`: there is no
adapter that writes chunks into a Qdrant collection, and no similarity
search over stored vectors. There is also no command-line program; the
adapters are meant to be wired together in your own code.