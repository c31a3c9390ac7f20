# lyracodec

`lyracodec` holds the framing and control logic of a low-bitrate neural speech
codec. It covers these tasks:

- sample-rate, bitrate and packet-size bookkeeping
- packing quantized bits into packets and reading them back
- discontinuous transmission on the encoder side
- packet-loss concealment on the decoder side
- cross-fading into and out of comfort noise
- timing each stage of the pipeline

The signal-processing parts are supplied by the caller as plain Python objects.
Each one needs only the methods listed below.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Configuration helpers

`lyracodec.config` holds the codec's fixed parameters. Among them are:

- `FRAME_RATE = 50`
- `INTERNAL_SAMPLE_RATE_HZ = 16000`
- `SUPPORTED_SAMPLE_RATES`
- `NUM_FEATURES`
- `NUM_MEL_BINS`
- `NUM_CHANNELS`

It also holds the conversions between them:

```python
from lyracodec import config

config.version_string()                     # "1.3.2"
config.supported_quantized_bits()           # (64, 120, 184)
config.num_samples_per_hop(16000)           # 320 samples per 20 ms frame
config.num_samples_per_window(16000)        # 640
config.packet_size(120)                     # 15 bytes
config.bitrate(120)                         # 6000 bps
config.bitrate_to_num_quantized_bits(6000)  # 120
config.packet_size_to_num_quantized_bits(15)  # 120
config.bitrate_to_num_quantized_bits(0)     # None
```

`num_samples_per_hop` raises `ValueError` for a rate that is not a multiple of
the frame rate.

`config.check_params_supported(sample_rate_hz, num_channels, model_path)`
checks a model directory. It returns `None` if everything is in order. It raises
`config.UnsupportedParamsError` (a `ValueError`) in these cases:

- the sample rate is not supported
- the channel count is not 1
- one of the files named by `config.assets()` is missing from `model_path`
- `lyra_config.binarypb` cannot be parsed
- the weights identifier in `lyra_config.binarypb` does not equal
  `config.VERSION_MINOR`

A missing `lyra_config.binarypb` reads as identifier 0, so it fails the last check.

## Components

`lyracodec.components.VectorQuantizer` is an abstract base class with two
methods:

- `quantize(features, num_bits)` returns a string of `num_bits` `'0'`/`'1'`
  characters.
- `decode_to_lossy_features(quantized_features)` returns a list of floats.

`lyracodec.components.ZeroFeatureEstimator(num_features)` is the feature
estimator the decoder uses during concealment:

- `update(features)` ignores its input.
- `estimate()` always returns `num_features` zeros.

## Encoding

`lyracodec.encoder.LyraEncoder` takes these arguments:

- `feature_extractor`: an object with `extract(audio)`, which returns the features
  or `None`
- `vector_quantizer`: a `VectorQuantizer`
- `packer=None`: a callable `(quantized, num_quantized_bits) -> bytes`. The default
  writes the bits most significant first into `config.packet_size(...)` bytes,
  padded with zeros.
- `sample_rate_hz=16000`
- `num_channels=1`
- `bitrate`: 3200 by default; one of 3200, 6000 or 9200
- `resampler=None`: an object with `resample(audio)`. It is required when
  `sample_rate_hz` is not 16000; without it the constructor raises `ValueError`.
- `noise_estimator=None`: an object with `receive_samples(samples)` and an
  `is_noise` property. Giving one turns on discontinuous transmission.

An unsupported sample rate, channel count or bitrate raises
`config.UnsupportedParamsError`.

`encode(audio)` takes one 20 ms frame and returns a packet as `bytes`. If
discontinuous transmission is on and the noise estimator reports noise, it returns
`b""`. It raises `lyracodec.encoder.EncodeError` in these cases:

- after resampling, the frame is not 320 samples long
- a component fails, that is returns `None` or `False`

`set_bitrate(bitrate)` switches to another supported bitrate. It raises
`UnsupportedParamsError` for any other value.

The encoder also has these read-only properties:

- `sample_rate_hz`
- `num_channels`
- `bitrate`
- `num_quantized_bits`
- `frame_rate`
- `dtx_enabled`

## Decoding

`lyracodec.decoder.LyraDecoder` takes these arguments:

- `generative_model` and `comfort_noise_generator`: objects with a
  `num_samples_available` property, `add_features(features)` and
  `generate_samples(n)`
- `vector_quantizer`: a `VectorQuantizer`
- `noise_estimator`: an object with a `noise_estimate` property and
  `receive_samples(samples)`
- `feature_estimator`: an object with `update` and `estimate`, such as
  `ZeroFeatureEstimator`
- `resampler=None`: an object with `filter_and_buffer(decode, num_samples)`. It is
  required when `sample_rate_hz` is not 16000.
- `unpacker=None`: a callable `(encoded, num_quantized_bits) -> str`. The default
  reads the bits most significant first.
- `sample_rate_hz=16000`
- `num_channels=1`

Decoding works in two steps:

1. `set_encoded_packet(encoded)` accepts a packet. Its length must match one of the
   supported packet sizes. The packet is unpacked and dequantized, and its features
   are queued in the generative model.
2. `decode_samples(num_samples)` returns that many samples at the external sample
   rate. A negative count raises `ValueError`.

When more samples are asked for than the received packets cover, the decoder
conceals the loss in three stages:

1. For `decoder.concealment_duration_samples()` samples (80 ms) it runs the
   generative model on estimated features.
2. Over `decoder.fade_duration_samples()` samples (40 ms) it cross-fades into
   comfort noise with a raised-cosine weight. The comfort noise is driven by the
   noise estimate.
3. When packets arrive again, it first plays out the frame it had started, then
   fades back out of comfort noise.

Only output decoded from received packets is fed to the noise estimator.
`is_comfort_noise` is true while the output is pure comfort noise.
`FadeDirection` names the two fade directions. Any failure raises
`lyracodec.decoder.DecodeError`.

## Benchmarking

`lyracodec.benchmark.run_benchmark(num_cond_vectors, feature_extractor=None,
vector_quantizer=None, model=None, seed=0)` feeds frames of seeded random audio
through the four stages of the pipeline:

1. feature extraction
2. quantization at 120 bits
3. dequantization
4. generation

Any stage given as `None` is replaced by a zero-filled stand-in. The function
returns a dict of per-call timings in microseconds. The keys are
`"feature_extractor"`, `"quantizer_quantize"`, `"quantizer_decode"`,
`"model_decode"` and `"total"`. It logs a summary line per stage through
`logging`.

It raises `lyracodec.benchmark.BenchmarkError` in these cases:

- `num_cond_vectors` is not positive
- any stage fails
- the model returns the wrong number of samples

The helpers that go with it:

- `timing_stats(timings)` returns a `TimingStats` with max, integer mean, min,
  call count and standard deviation. The first timing is left out of the deviation.
- `format_stats(timings, title)` renders those figures as one line in milliseconds.
- `write_csv(timings, title, output_dir)` writes `<output_dir>/<title>.csv` with a
  `Time(us)` header and returns its path.

## What the package does not do

The package contains none of the following, so it cannot encode or decode real
speech on its own:

- neural networks
- a model loader
- a feature extractor
- a vector quantizer
- a resampler
- a noise estimator
- a factory that builds an encoder or decoder from a model directory

`check_params_supported` only checks that the model files exist and that the
identifier matches. The package has no command-line program either.