# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

import unittest
from datetime import datetime, timezone

from shared.json_utils import camel_to_snake, convert_keys, snake_to_camel


class JsonUtilsTest(unittest.TestCase):

    def test_camel_to_snake_handles_acronyms(self):
        self.assertEqual(camel_to_snake("photoURL"), "photo_url")
        self.assertEqual(camel_to_snake("ipInfo"), "ip_info")
        self.assertEqual(camel_to_snake("uid"), "uid")

    def test_snake_to_camel_restores_acronyms(self):
        self.assertEqual(snake_to_camel("photo_url"), "photoURL")
        self.assertEqual(snake_to_camel("user_email"), "userEmail")

    def test_convert_keys_is_recursive(self):
        stamp = datetime(2024, 1, 2, tzinfo=timezone.utc)
        doc = {
            "userEmail": "a@example.com",
            "ipInfo": {"ipVersion": "IPv4"},
            "history": [{"downloadTime": 12}],
            "timestamp": stamp,
        }
        converted = convert_keys(doc, "camel_to_snake")
        self.assertEqual(
            converted,
            {
                "user_email": "a@example.com",
                "ip_info": {"ip_version": "IPv4"},
                "history": [{"download_time": 12}],
                "timestamp": stamp,
            },
        )
        self.assertEqual(convert_keys(converted, "snake_to_camel"), doc)

    def test_unknown_direction(self):
        with self.assertRaises(ValueError):
            convert_keys({}, "sideways")


if __name__ == "__main__":
    unittest.main()
